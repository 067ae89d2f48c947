from typing import Optional

from sqlalchemy import select

from database.models import Resume, Job
from database.repositories.base import BaseRepository


class SubjectRepository(BaseRepository):
    def get_resume(self, resume_id: str) -> Optional[Resume]:
        stmt = select(Resume).where(Resume.resume_id == resume_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_job(self, job_id: str) -> Optional[Job]:
        stmt = select(Job).where(Job.job_id == job_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def save_resume(self, **fields) -> Resume:
        resume = Resume(**fields)
        self.db.merge(resume)
        self.db.flush()
        return resume

    def save_job(self, **fields) -> Job:
        job = Job(**fields)
        self.db.merge(job)
        self.db.flush()
        return job
