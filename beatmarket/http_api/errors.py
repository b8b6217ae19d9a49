from fastapi import HTTPException

from beatmarket.errors import LedgerError, InvalidInput, NotFound, Forbidden

# Missing beat and foreign beat look the same from outside
BEAT_NOT_OWNED = "Beat not found or not owned by user"


def http_error(error: LedgerError) -> HTTPException:
    """Translate a ledger error into the HTTP status the API promises"""
    if isinstance(error, InvalidInput):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, Forbidden):
        return HTTPException(status_code=404, detail=BEAT_NOT_OWNED)
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
