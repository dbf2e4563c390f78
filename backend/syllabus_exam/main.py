import logging

from fastapi import FastAPI

from .cleanup import purge_older_than
from .db import Base, SessionLocal, engine
from .gemini_client import GenerationConfig
from .settings import settings
from .routers import attempts, exams, syllabuses

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Syllabus Exam API")
app.include_router(syllabuses.router)
app.include_router(exams.router)
app.include_router(attempts.router)

# Built once per process and shared by every request
app.state.generation_config = GenerationConfig.from_settings(settings)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": app.state.generation_config.configured}


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	if not app.state.generation_config.configured:
		logger.warning("GEMINI_API_KEY is not set; exams will be generated from templates")
	if settings.retention_days > 0:
		db = SessionLocal()
		try:
			purge_older_than(db, settings.retention_days)
		except Exception:
			logger.exception("Startup purge failed")
		finally:
			db.close()
