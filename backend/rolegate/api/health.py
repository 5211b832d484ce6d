from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from rolegate.db.database import get_db
from rolegate.core.config import settings
from rolegate.core.logging import api_logger

router = APIRouter()

@router.get('/healthz')
def healthz():
    return {"status": "ok"}

@router.get('/readyz')
async def readyz(request: Request, db: AsyncSession = Depends(get_db)):
    # Document store connectivity
    try:
        await db.execute(text('SELECT 1'))
    except Exception as e:
        api_logger.error('Readiness DB check failed', error=e)
        raise HTTPException(status_code=503, detail='Not ready')

    # Session storage only matters when it lives in Redis
    if settings.SESSION_BACKEND == "redis":
        redis_client = getattr(request.app.state, "redis", None)
        try:
            if redis_client is None or not redis_client.ping():
                api_logger.error('Redis health check failed')
                raise HTTPException(status_code=503, detail='Not ready')
        except HTTPException:
            raise
        except Exception as e:
            api_logger.error('Redis readiness check failed', error=e)
            raise HTTPException(status_code=503, detail='Not ready')

    return {"status": "ready"}
