"""
Listening Insights API
Main FastAPI application
"""

from fastapi import FastAPI, Body, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
import logging
import asyncio
from typing import Any, Dict, Optional

from .exceptions import (
    InsightComputationError,
    MalformedInputError,
    SessionExpiredError,
    UpstreamFetchError,
)
from .insights_engine import InsightsEngine
from . import spotify_client

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logger = logging.getLogger("listening-insights")
logging.basicConfig(level=LOG_LEVEL)

app = FastAPI(
    title="Listening Insights API",
    description="Listening diversity, loyalty and taste-evolution insights from Spotify top items",
    version="1.0.0"
)

# CORS
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def bearer_token(authorization: Optional[str]) -> str:
    """Extract the Spotify access token from an Authorization header."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Authorization header must be 'Bearer <token>'")
    return token.strip()


async def run_engine(engine: InsightsEngine) -> Dict[str, Any]:
    """Build the report off the event loop and return its JSON form."""
    loop = asyncio.get_running_loop()
    report = await loop.run_in_executor(None, engine.build_report)
    return report.to_dict()


@app.get("/")
async def root():
    return {"message": "Listening Insights API", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/insights")
async def get_insights(authorization: Optional[str] = Header(None)):
    """
    Fetch the listener's top artists and tracks for all three time windows
    and return the full insight report.
    """
    token = bearer_token(authorization)

    try:
        client = spotify_client.create_spotify_client(token)

        # Profile and windows are independent requests
        loop = asyncio.get_running_loop()
        user, (artists, tracks) = await asyncio.gather(
            loop.run_in_executor(None, spotify_client.fetch_current_user, client),
            spotify_client.fetch_listening_windows(client),
        )
        logger.info(f"Fetched listening windows for user {user.get('id')}")

        insights = await run_engine(InsightsEngine(artists, tracks))
        logger.info(f"Analysis complete for user {user.get('id')}")

        return JSONResponse(content={"user": user, "insights": insights})

    except HTTPException:
        raise
    except SessionExpiredError as e:
        logger.info(f"Spotify session rejected: {e}")
        raise HTTPException(status_code=401, detail=str(e))
    except UpstreamFetchError as e:
        logger.warning(f"Upstream fetch failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except MalformedInputError as e:
        logger.warning(f"Spotify returned malformed data: {e}")
        raise HTTPException(status_code=502, detail=f"Malformed data from Spotify: {e}")
    except InsightComputationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error generating insights: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to analyze your music data. Please try again."
        )


@app.post("/insights/analyze")
async def analyze_windows(payload: Dict[str, Any] = Body(...)):
    """
    Run the engine over already-fetched windows.

    Body: {"artists": {"short_term": ..., "medium_term": ..., "long_term": ...},
           "tracks":  {"short_term": ..., "medium_term": ..., "long_term": ...}}
    """
    try:
        engine = InsightsEngine.from_payloads(payload.get("artists"), payload.get("tracks"))
        insights = await run_engine(engine)
        return JSONResponse(content=insights)

    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InsightComputationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error analyzing submitted windows: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error analyzing windows: {str(e)}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
