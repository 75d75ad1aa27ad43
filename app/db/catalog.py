import json
from typing import Any

from sqlalchemy.orm import Session

from app.db.models import Resource

CURATED_RESOURCES: list[dict[str, Any]] = [
    {
        "title": "Diabetes Meal Planning",
        "description": "Guidelines for creating healthy meal plans for diabetes management, including carbohydrate counting and portion control.",
        "url": "https://www.diabetes.org/nutrition",
        "category": "nutrition",
        "type": "article",
        "tags": ["meal planning", "diet", "carbohydrates", "nutrition"],
    },
    {
        "title": "Glycemic Index and Diabetes",
        "description": "Understanding the glycemic index and how it affects blood sugar levels, with a list of low GI foods beneficial for diabetes.",
        "url": "https://www.diabetes.org/glycemic-index-and-diabetes",
        "category": "nutrition",
        "type": "guide",
        "tags": ["glycemic index", "blood sugar", "food", "nutrition"],
    },
    {
        "title": "Insulin Therapy Basics",
        "description": "Introduction to insulin therapy including types of insulin, delivery methods, and best practices for administration.",
        "url": "https://www.cdc.gov/diabetes/managing/insulin.html",
        "category": "treatment",
        "type": "guide",
        "tags": ["insulin", "medication", "therapy", "treatment"],
    },
    {
        "title": "Oral Diabetes Medications",
        "description": "Overview of common oral medications for type 2 diabetes, their mechanisms of action, and potential side effects.",
        "url": "https://www.niddk.nih.gov/health-information/diabetes/overview/insulin-medicines-treatments",
        "category": "treatment",
        "type": "article",
        "tags": ["medication", "oral medication", "type 2", "treatment"],
    },
    {
        "title": "Blood Glucose Monitoring",
        "description": "Guidance on monitoring blood glucose levels, including target ranges, testing frequency, and interpreting results.",
        "url": "https://www.cdc.gov/diabetes/managing/managing-blood-sugar/bloodglucosemonitoring.html",
        "category": "management",
        "type": "guide",
        "tags": ["glucose", "monitoring", "blood sugar", "testing"],
    },
    {
        "title": "Managing Diabetes During Illness",
        "description": "Tips for managing diabetes during sick days, including medication adjustments, hydration, and when to seek medical help.",
        "url": "https://www.diabetes.org/diabetes/treatment-care/planning-sick-days",
        "category": "management",
        "type": "guide",
        "tags": ["sick days", "illness", "management", "care"],
    },
    {
        "title": "Exercise Guidelines for Diabetes",
        "description": "Recommended physical activity guidelines for people with diabetes, including types of exercise and blood sugar considerations.",
        "url": "https://www.diabetes.org/fitness",
        "category": "exercise",
        "type": "guide",
        "tags": ["exercise", "fitness", "physical activity", "health"],
    },
    {
        "title": "Preventing Exercise-Related Hypoglycemia",
        "description": "Strategies to prevent low blood sugar during and after exercise, including timing of meals and medication adjustments.",
        "url": "https://www.diabetes.org/fitness/get-and-stay-fit/exercise-safety",
        "category": "exercise",
        "type": "article",
        "tags": ["hypoglycemia", "exercise", "safety", "blood sugar"],
    },
    {
        "title": "Diabetic Retinopathy",
        "description": "Information about diabetic eye disease, screening recommendations, and treatment options to prevent vision loss.",
        "url": "https://www.nei.nih.gov/learn-about-eye-health/eye-conditions-and-diseases/diabetic-retinopathy",
        "category": "complications",
        "type": "article",
        "tags": ["retinopathy", "eyes", "vision", "complications"],
    },
    {
        "title": "Diabetes and Kidney Disease",
        "description": "Understanding diabetic nephropathy, kidney function tests, and strategies to maintain kidney health with diabetes.",
        "url": "https://www.kidney.org/atoz/content/diabetes",
        "category": "complications",
        "type": "article",
        "tags": ["kidney", "nephropathy", "complications", "health"],
    },
]


def build_resource(entry: dict[str, Any], is_approved: bool = True) -> Resource:
    return Resource(
        title=entry["title"],
        description=entry["description"],
        url=entry.get("url"),
        category=entry["category"],
        type=entry.get("type", "article"),
        tags_json=json.dumps([str(tag).lower() for tag in entry.get("tags", [])]),
        is_approved=is_approved,
    )


def seed_resources(db: Session, *, replace: bool = True) -> int:
    """Load the curated catalog; with ``replace`` the existing rows are cleared first."""
    if replace:
        db.query(Resource).delete()
    for entry in CURATED_RESOURCES:
        db.add(build_resource(entry))
    db.commit()
    return len(CURATED_RESOURCES)
