#!/usr/bin/env python3
"""
Weight optimizer - maps job text to a normalized weight vector.

The vector has one weight per scoring dimension. Industry presets are
detected from the job description, role presets from title plus
description (role wins over industry), then a seniority multiplier from the
title is applied and the result renormalized to sum to 1.0.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Sequence, Tuple

DIMENSIONS = ('skill', 'semantic', 'experience', 'education', 'certification')

DEFAULT_WEIGHTS: Dict[str, float] = {
    'skill': 0.25,
    'semantic': 0.20,
    'experience': 0.20,
    'education': 0.20,
    'certification': 0.15,
}

INDUSTRY_WEIGHTS: Dict[str, Dict[str, float]] = {
    'fintech': {'skill': 0.35, 'semantic': 0.20, 'experience': 0.15, 'education': 0.15, 'certification': 0.15},
    'healthcare': {'skill': 0.25, 'semantic': 0.20, 'experience': 0.25, 'education': 0.20, 'certification': 0.10},
    'enterprise_saas': {'skill': 0.25, 'semantic': 0.15, 'experience': 0.25, 'education': 0.20, 'certification': 0.15},
    'startup': {'skill': 0.40, 'semantic': 0.25, 'experience': 0.15, 'education': 0.10, 'certification': 0.10},
    'data_science': {'skill': 0.40, 'semantic': 0.25, 'experience': 0.15, 'education': 0.15, 'certification': 0.05},
    'security': {'skill': 0.30, 'semantic': 0.15, 'experience': 0.20, 'education': 0.15, 'certification': 0.20},
}

ROLE_WEIGHTS: Dict[str, Dict[str, float]] = {
    'frontend_engineer': {'skill': 0.40, 'semantic': 0.25, 'experience': 0.15, 'education': 0.10, 'certification': 0.10},
    'backend_engineer': {'skill': 0.35, 'semantic': 0.20, 'experience': 0.20, 'education': 0.15, 'certification': 0.10},
    'devops_engineer': {'skill': 0.30, 'semantic': 0.15, 'experience': 0.25, 'education': 0.15, 'certification': 0.15},
    'data_scientist': {'skill': 0.45, 'semantic': 0.25, 'experience': 0.10, 'education': 0.15, 'certification': 0.05},
    'product_manager': {'skill': 0.15, 'semantic': 0.30, 'experience': 0.30, 'education': 0.15, 'certification': 0.10},
    'engineering_manager': {'skill': 0.20, 'semantic': 0.20, 'experience': 0.35, 'education': 0.15, 'certification': 0.10},
    'security_engineer': {'skill': 0.35, 'semantic': 0.15, 'experience': 0.20, 'education': 0.10, 'certification': 0.20},
}

SENIORITY_ADJUSTMENTS: Dict[str, Dict[str, float]] = {
    'entry': {'skill': 1.1, 'semantic': 1.0, 'experience': 0.8, 'education': 1.1, 'certification': 0.9},
    'mid': {'skill': 1.0, 'semantic': 1.0, 'experience': 1.0, 'education': 1.0, 'certification': 1.0},
    'senior': {'skill': 0.9, 'semantic': 1.0, 'experience': 1.2, 'education': 0.95, 'certification': 1.0},
    'executive': {'skill': 0.7, 'semantic': 1.3, 'experience': 1.4, 'education': 0.9, 'certification': 0.9},
}


def _compile(pattern: str) -> Pattern:
    return re.compile(rf"\b(?:{pattern})\b", re.IGNORECASE)


# Checked in order, first match wins
INDUSTRY_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ('fintech', _compile(r"fintech|banking|payments?|crypto|blockchain")),
    ('healthcare', _compile(r"healthcare|medical|hospital|pharma|health")),
    ('enterprise_saas', _compile(r"enterprise|saas|cloud|crm|erp")),
    ('startup', _compile(r"startup|seed|series [a-z]|venture|agile")),
    ('data_science', _compile(r"data science|machine learning|ml|ai|nlp|computer vision")),
    ('security', _compile(r"security|cybersecurity|infosec|penetration|threat")),
)

ROLE_PATTERNS: Tuple[Tuple[str, Pattern], ...] = (
    ('frontend_engineer', _compile(r"frontend|react|vue|angular|ui|web")),
    ('backend_engineer', _compile(r"backend|api|server|nodejs|python|java")),
    ('devops_engineer', _compile(r"devops|infrastructure|kubernetes|docker|ci/cd")),
    ('data_scientist', _compile(r"data scientist|analytics|ml engineer|data engineer")),
    ('product_manager', _compile(r"product manager|pm|product lead")),
    ('engineering_manager', _compile(r"engineering manager|tech lead|engineering director")),
    ('security_engineer', _compile(r"security engineer|infosec|penetration")),
)

SENIORITY_LEVELS: Tuple[Tuple[str, Sequence[str]], ...] = (
    ('entry', ('intern', 'junior', 'entry')),
    ('mid', ('mid', 'intermediate')),
    ('senior', ('senior', 'lead', 'principal', 'staff')),
    ('executive', ('director', 'vp', 'cto', 'ceo')),
)

DEFAULT_SENIORITY = 'mid'


@dataclass
class WeightProfile:
    """What the optimizer detected for one job, and the weights it chose."""
    weights: Dict[str, float]
    industry: Optional[str]
    role: Optional[str]
    seniority: str
    confidence: float


class WeightOptimizer:
    """Stateless; one instance can be shared across threads."""

    def get_optimal_weights(
        self,
        title: Optional[str],
        description: Optional[str],
        metadata: Optional[Dict] = None,
    ) -> Dict[str, float]:
        return self.describe(title, description, metadata).weights

    def describe(
        self,
        title: Optional[str],
        description: Optional[str],
        metadata: Optional[Dict] = None,
    ) -> WeightProfile:
        title = title or ''
        description = description or ''

        industry = self.detect_industry(description)
        role = self.detect_role(title, description)
        seniority = self.detect_seniority_level(title)

        weights = dict(DEFAULT_WEIGHTS)
        if industry:
            weights = dict(INDUSTRY_WEIGHTS[industry])
        if role:
            weights = dict(ROLE_WEIGHTS[role])
        weights = self.normalize_weights(self.adjust_for_seniority(weights, seniority))

        return WeightProfile(
            weights=weights,
            industry=industry,
            role=role,
            seniority=seniority,
            confidence=self._confidence(industry, role, seniority),
        )

    def detect_industry(self, description: Optional[str]) -> Optional[str]:
        for industry, pattern in INDUSTRY_PATTERNS:
            if pattern.search(description or ''):
                return industry
        return None

    def detect_role(self, title: Optional[str], description: Optional[str]) -> Optional[str]:
        combined = f"{title or ''} {description or ''}"
        for role, pattern in ROLE_PATTERNS:
            if pattern.search(combined):
                return role
        return None

    def detect_seniority_level(self, title: Optional[str]) -> str:
        words = set(re.findall(r"[a-z]+", (title or '').lower()))
        for level, keywords in SENIORITY_LEVELS:
            if any(keyword in words for keyword in keywords):
                return level
        return DEFAULT_SENIORITY

    def adjust_for_seniority(self, weights: Dict[str, float], level: str) -> Dict[str, float]:
        factors = SENIORITY_ADJUSTMENTS.get(level, SENIORITY_ADJUSTMENTS[DEFAULT_SENIORITY])
        return {dim: weights[dim] * factors[dim] for dim in DIMENSIONS}

    def normalize_weights(self, weights: Dict[str, float]) -> Dict[str, float]:
        total = sum(max(0.0, weights.get(dim, 0.0)) for dim in DIMENSIONS)
        if total <= 0:
            return dict(DEFAULT_WEIGHTS)
        return {dim: max(0.0, weights.get(dim, 0.0)) / total for dim in DIMENSIONS}

    def get_weight_confidence(self, title: Optional[str], description: Optional[str]) -> float:
        return self._confidence(
            self.detect_industry(description),
            self.detect_role(title, description),
            self.detect_seniority_level(title),
        )

    @staticmethod
    def _confidence(industry: Optional[str], role: Optional[str], seniority: str) -> float:
        confidence = 0.5
        if industry:
            confidence += 0.2
        if role:
            confidence += 0.2
        if seniority != DEFAULT_SENIORITY:
            confidence += 0.1
        return min(1.0, round(confidence, 2))
