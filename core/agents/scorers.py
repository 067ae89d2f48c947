#!/usr/bin/env python3
"""
Baseline scorers for the five scoring dimensions.

These are intentionally simple: exact skill overlap, year ratios, degree
tiers, certification overlap and term-frequency cosine similarity.
"""

import math
import re
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.agents.base import BaseScorer, register_scorer
from database.models import (
    SkillAgentResult,
    ExperienceAgentResult,
    EducationAgentResult,
    CertificationAgentResult,
    SemanticAgentResult,
)

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9+#.]*")

STOP_WORDS = {
    'a', 'an', 'and', 'are', 'as', 'at', 'be', 'by', 'for', 'from', 'in', 'is',
    'it', 'of', 'on', 'or', 'our', 'the', 'to', 'we', 'will', 'with', 'you', 'your',
}

# Highest tier wins when several levels are mentioned
EDUCATION_LEVELS: Tuple[Tuple[str, int, Tuple[str, ...]], ...] = (
    ('Doctorate', 5, ('doctorate', 'phd', 'ph.d.', 'md', 'professional degree')),
    ('Masters', 4, ('masters', 'master', 'mba', 'ms', 'ma', 'm.s.', 'm.a.')),
    ('Bachelors', 3, ('bachelors', 'bachelor', 'bs', 'ba', 'b.s.', 'b.a.')),
    ('Associate', 2, ('associate',)),
    ('High School', 1, ('high school', 'ged')),
)

TECH_FIELDS = (
    'computer science', 'engineering', 'software', 'information technology',
    'data science', 'machine learning', 'artificial intelligence', 'cybersecurity',
    'mathematics', 'physics', 'statistics', 'computer engineering',
)


def _normalize(items: Optional[Iterable[Any]]) -> List[str]:
    seen = []
    for item in items or []:
        value = str(item).strip().lower()
        if value and value not in seen:
            seen.append(value)
    return seen


def _tokens(text: Optional[str]) -> List[str]:
    return [t for t in _TOKEN_RE.findall((text or '').lower()) if t not in STOP_WORDS]


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<![a-z]){re.escape(phrase)}(?![a-z])", text) is not None


def clamp_score(value: float) -> float:
    return round(max(0.0, min(100.0, value)), 2)


@register_scorer
class SkillScorer(BaseScorer):
    strategy_type = 'skill'
    result_model = SkillAgentResult

    def analyze(self, resume, job) -> Dict[str, Any]:
        required = _normalize(job.required_skills)
        candidate = set(_normalize(resume.skills))
        resume_text = (resume.raw_text or '').lower()

        matched = [s for s in required if s in candidate or _contains_phrase(resume_text, s)]
        missing = [s for s in required if s not in matched]
        score = 100.0 if not required else len(matched) / len(required) * 100

        return {
            'score': clamp_score(score),
            'matched_skills': matched,
            'missing_skills': missing,
            'matched_skills_count': len(matched),
            'total_job_skills_required': len(required),
        }

    def get_required_result_fields(self) -> List[str]:
        return ['score', 'matched_skills_count', 'total_job_skills_required']


@register_scorer
class ExperienceScorer(BaseScorer):
    strategy_type = 'experience'
    result_model = ExperienceAgentResult

    def analyze(self, resume, job) -> Dict[str, Any]:
        candidate_years = float(resume.years_experience or 0)
        required_years = float(job.required_years or 0)

        return {
            'score': clamp_score(self.score_years(candidate_years, required_years)),
            'candidate_years': candidate_years,
            'required_years': required_years,
            'meets_requirement': candidate_years >= required_years,
        }

    @staticmethod
    def score_years(candidate_years: float, required_years: float) -> float:
        if required_years <= 0:
            return 100.0
        if candidate_years < required_years:
            return candidate_years / required_years * 100
        overage = candidate_years - (required_years + 5)
        if overage <= 0:
            return 100.0
        # Heavily over-experienced candidates lose a little, never below 85
        return max(85.0, 100 - min(10.0, overage * 2))

    def get_required_result_fields(self) -> List[str]:
        return ['score', 'candidate_years', 'required_years', 'meets_requirement']


@register_scorer
class EducationScorer(BaseScorer):
    strategy_type = 'education'
    result_model = EducationAgentResult

    def analyze(self, resume, job) -> Dict[str, Any]:
        candidate_level, candidate_tier = self.parse_level(resume.education_level or resume.raw_text)
        required_level, required_tier = self.parse_level(job.required_education or job.description)
        if required_tier == 0:
            required_level = 'None Required'

        field_relevant = any(_contains_phrase((resume.raw_text or '').lower(), f) for f in TECH_FIELDS)

        return {
            'score': clamp_score(self.score_tiers(candidate_tier, required_tier, field_relevant)),
            'candidate_level': candidate_level,
            'candidate_tier': candidate_tier,
            'required_level': required_level,
            'required_tier': required_tier,
            'meets_requirement': candidate_tier >= required_tier,
            'field_relevant': field_relevant,
        }

    @staticmethod
    def parse_level(text: Optional[str]) -> Tuple[str, int]:
        lowered = (text or '').lower()
        for level, tier, keywords in EDUCATION_LEVELS:
            if any(_contains_phrase(lowered, keyword) for keyword in keywords):
                return level, tier
        return 'Unknown', 0

    @staticmethod
    def score_tiers(candidate_tier: int, required_tier: int, field_relevant: bool) -> float:
        if required_tier == 0 or candidate_tier > required_tier:
            return 100.0
        if candidate_tier == required_tier:
            return 100.0 if field_relevant else 95.0
        gap = required_tier - candidate_tier
        return {1: 75.0, 2: 50.0}.get(gap, 25.0)

    def get_required_result_fields(self) -> List[str]:
        return ['score', 'candidate_level', 'required_level', 'meets_requirement']


@register_scorer
class CertificationScorer(BaseScorer):
    strategy_type = 'certification'
    result_model = CertificationAgentResult

    def analyze(self, resume, job) -> Dict[str, Any]:
        required = _normalize(job.required_certifications)
        held = _normalize(resume.certifications)

        matched = [c for c in required if c in held]
        missing = [c for c in required if c not in held]
        extra = [c for c in held if c not in required]

        if required:
            score = len(matched) / len(required) * 100 + min(5 * len(extra), 15)
        else:
            score = 100.0

        return {
            'score': clamp_score(score),
            'matched_certifications': matched,
            'missing_certifications': missing,
            'additional_certifications': extra,
        }

    def get_required_result_fields(self) -> List[str]:
        return ['score', 'matched_certifications', 'missing_certifications']


@register_scorer
class SemanticScorer(BaseScorer):
    strategy_type = 'semantic'
    result_model = SemanticAgentResult

    def analyze(self, resume, job) -> Dict[str, Any]:
        resume_terms = Counter(_tokens(resume.raw_text) + _tokens(' '.join(_normalize(resume.skills))))
        job_terms = Counter(_tokens(job.title) + _tokens(job.description))
        if not resume_terms or not job_terms:
            raise ValueError("Insufficient text data for semantic analysis")

        similarity = self.cosine_similarity(resume_terms, job_terms)
        shared = sorted(set(resume_terms) & set(job_terms), key=lambda t: -job_terms[t])

        return {
            'score': clamp_score(similarity * 100),
            'similarity': round(similarity, 4),
            'analysis': {
                'shared_terms': shared[:10],
                'coverage': round(len(shared) / len(job_terms), 4),
            },
        }

    @staticmethod
    def cosine_similarity(a: Counter, b: Counter) -> float:
        dot = sum(a[t] * b[t] for t in set(a) & set(b))
        norm = math.sqrt(sum(v * v for v in a.values())) * math.sqrt(sum(v * v for v in b.values()))
        return dot / norm if norm else 0.0

    def get_required_result_fields(self) -> List[str]:
        return ['score', 'similarity', 'analysis']
