from fastapi import HTTPException

from modules.forms.exceptions import WorkflowError


def http_error(exc: WorkflowError) -> HTTPException:
    """Translate a workflow error to the API's error body."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
