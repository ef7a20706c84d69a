from fastapi import HTTPException, Request, status

from cafepos.services.engine import CafeEngine


def get_engine(request: Request) -> CafeEngine:
    """The engine built at startup (see main.lifespan)."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Engine not started.")
    return engine
