import logging
import os

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from core.config import PipelineConfig
from routers.prediction import router as prediction_router

logging.basicConfig(
    level=getattr(logging, PipelineConfig.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = FastAPI(title="Age Progression Prediction API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(PipelineConfig.OUTPUT_DIR, exist_ok=True)
app.mount("/files", StaticFiles(directory=PipelineConfig.OUTPUT_DIR), name="files")

app.include_router(prediction_router)

if __name__ == "__main__":
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True)
