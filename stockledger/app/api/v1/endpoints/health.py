from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request):
    repo = getattr(request.app.state, "repository", None)
    return {
        "status": "ok",
        "records": len(repo.snapshot()) if repo is not None else 0,
    }
