import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_classifier, get_current_user_id
from app.db.database import get_db
from app.errors import ClassifierError
from app.models.match import OnboardingAnswer
from app.services.classifier import CategoryClassifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["onboarding"])


class OnboardingCreate(BaseModel):
    company_name: str
    product_name: str
    product_url: Optional[str] = None
    product_description: str = ""
    product_category: str = ""


def _answer_to_dict(answer: OnboardingAnswer) -> dict:
    return {
        "id": answer.id,
        "user_id": answer.user_id,
        "company_name": answer.company_name,
        "product_name": answer.product_name,
        "product_url": answer.product_url,
        "product_description": answer.product_description,
        "product_category": answer.product_category,
        "is_bitcoin_suitable": answer.is_bitcoin_suitable,
        "created_at": answer.created_at,
    }


async def _latest_answer(db: AsyncSession, user_id: str) -> Optional[OnboardingAnswer]:
    result = await db.execute(
        select(OnboardingAnswer)
        .where(OnboardingAnswer.user_id == user_id)
        .order_by(OnboardingAnswer.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


@router.post("/onboarding")
async def create_onboarding_answer(
    body: OnboardingCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    answer = OnboardingAnswer(user_id=user_id, **body.model_dump())
    db.add(answer)
    await db.commit()
    await db.refresh(answer)
    return _answer_to_dict(answer)


@router.get("/onboarding/latest")
async def get_latest_onboarding_answer(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    answer = await _latest_answer(db, user_id)
    if not answer:
        raise HTTPException(status_code=404, detail="Onboarding answers not found")
    return {**_answer_to_dict(answer), "categories": answer.categories}


@router.post("/analyze-product")
async def analyze_product(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    classifier: CategoryClassifier = Depends(get_classifier),
):
    """Classify the user's latest product description into search categories."""
    answer = await _latest_answer(db, user_id)
    if not answer:
        raise HTTPException(status_code=404, detail="Onboarding answers not found")

    try:
        analysis = await classifier.classify(answer)
    except ClassifierError as e:
        logger.error("Product analysis failed for user %s: %s", user_id, e)
        raise HTTPException(status_code=502, detail=str(e))

    answer.product_category = ", ".join(analysis.categories)
    answer.is_bitcoin_suitable = analysis.is_bitcoin_suitable
    await db.commit()

    return {
        "success": True,
        "onboarding_answer_id": answer.id,
        "analysis": {
            "categories": analysis.categories,
            "is_bitcoin_suitable": analysis.is_bitcoin_suitable,
            "explanation": analysis.explanation,
        },
    }
