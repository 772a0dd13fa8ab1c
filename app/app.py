# Main script to run the diary api, startup scripts, start the different routers

import logging
from contextlib import asynccontextmanager
import db_setup
import repository
from fastapi import FastAPI, Depends, HTTPException
from routers import auth, events, tags, calendar

# Initialize logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create the schema on first start
    db_setup.setup_database()
    yield

# Initialize FastAPI app
app = FastAPI(title="Diary-API", version="0.1.0", lifespan=lifespan)

# Include routers
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(events.router, prefix="/events", tags=["events"])
app.include_router(tags.router, prefix="/tags", tags=["tags"])
app.include_router(calendar.router, prefix="/calendar", tags=["calendar"])

# Health check endpoint
@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/db-check")
async def db_check(repo=Depends(repository.get_repository)):
    try:
        repo.ping()
    except Exception as e:
        logger.error(f"Database check failed: {e}")
        raise HTTPException(status_code=500, detail=f"Database error: {e}")
    return {"status": "ok", "db": "connected"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
