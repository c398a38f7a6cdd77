# app/main.py
import logging
from fastapi import FastAPI
from sqlalchemy import exc as sa_exc

from app.database import engine, Base
from app.core.errors import FeedbackError, feedback_error_handler
from app.routers import auth, pins, assessment, results, admin, triwulan

# Register every table on Base.metadata before create_all
from app.models import user, period, pin, triwulan as triwulan_models, assessment as assessment_models  # noqa: F401

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="Employee Feedback - Pins and 360 Assessment", version="1.0")

app.add_exception_handler(FeedbackError, feedback_error_handler)

# Include Routers
app.include_router(auth.router)
app.include_router(pins.router)
app.include_router(assessment.router)
app.include_router(results.router)
app.include_router(admin.router)
app.include_router(triwulan.router)

# Create DB Tables (for demo only, use Alembic in prod)
@app.on_event("startup")
async def startup_event():
    # ignore duplicate-object errors from previous partial runs
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logging.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise

@app.get("/")
def read_root():
    return {"message": "Employee Feedback API"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
