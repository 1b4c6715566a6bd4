# cashledger/utils/error_codes.py

ERROR_CODES = {
    "VALIDATION_ERROR": "VALIDATION_ERROR",
    "NOT_FOUND": "NOT_FOUND",
    "NOT_PENDING": "NOT_PENDING",
    "CONFLICT": "CONFLICT",
    "VOUCHER_EXHAUSTED": "VOUCHER_EXHAUSTED",
    "DEPENDENCY_ERROR": "DEPENDENCY_ERROR",
    "SERVER_ERROR": "SERVER_ERROR",
}

HTTP_STATUS_TO_ERROR_CODE = {
    400: ERROR_CODES["VALIDATION_ERROR"],
    404: ERROR_CODES["NOT_FOUND"],
    405: "METHOD_NOT_ALLOWED",
    409: ERROR_CODES["CONFLICT"],
    422: ERROR_CODES["VALIDATION_ERROR"],
    500: ERROR_CODES["SERVER_ERROR"],
}
