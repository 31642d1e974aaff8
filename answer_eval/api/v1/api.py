# answer_eval/api/v1/api.py
from fastapi import APIRouter

from answer_eval.api.v1.endpoints import health, ocr, reviews, submissions

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health")
api_router.include_router(submissions.router)
api_router.include_router(reviews.router)
api_router.include_router(ocr.router)
