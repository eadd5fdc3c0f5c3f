"""Request and response models for the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.db import Collection, LearnableItem
from src.db.items import CollectionStats, CollectionSummary
from src.engine.mastery import category_of
from src.engine.proficiency import Assessment, ProficiencyBand, SkillBand
from src.engine.session import OutcomeResult, SessionSummary


class ErrorBody(BaseModel):
    error: str
    message: str


class CollectionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: int = Field(alias="ownerId")
    name: str = Field(min_length=1, max_length=255)
    kind: str = "vocabulary"
    color: Optional[str] = None


class CollectionResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    kind: str
    color: str

    @classmethod
    def from_model(cls, collection: Collection) -> "CollectionResponse":
        return cls(
            id=collection.id,
            owner_id=collection.owner_id,
            name=collection.name,
            kind=collection.kind,
            color=collection.color,
        )


class CollectionSummaryResponse(BaseModel):
    id: int
    name: str
    kind: str
    color: str
    count: int
    mastered: int

    @classmethod
    def from_summary(cls, summary: CollectionSummary) -> "CollectionSummaryResponse":
        return cls(
            id=summary.id,
            name=summary.name,
            kind=summary.kind,
            color=summary.color,
            count=summary.count,
            mastered=summary.mastered,
        )


class CollectionStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    mastered: int
    learning: int
    new: int
    avg_mastery: int = Field(alias="avgMastery")
    due_count: int = Field(alias="dueCount")

    @classmethod
    def from_stats(cls, stats: CollectionStats) -> "CollectionStatsResponse":
        return cls(
            total=stats.total,
            mastered=stats.mastered,
            learning=stats.learning,
            new=stats.new,
            avg_mastery=stats.avg_mastery,
            due_count=stats.due_count,
        )


class ItemCreate(BaseModel):
    term: str = Field(min_length=1)
    kind: str = "vocabulary"
    meaning: Optional[str] = None
    example: Optional[str] = None
    note: Optional[str] = None
    level: Optional[str] = None
    tags: Optional[str] = None


class ItemResponse(BaseModel):
    id: int
    collection_id: int
    kind: str
    term: str
    meaning: Optional[str]
    example: Optional[str]
    mastery_level: int
    category: str
    starred: bool
    last_reviewed_at: Optional[datetime]
    next_review_at: Optional[datetime]

    @classmethod
    def from_model(cls, item: LearnableItem) -> "ItemResponse":
        return cls(
            id=item.id,
            collection_id=item.collection_id,
            kind=item.kind,
            term=item.term,
            meaning=item.meaning,
            example=item.example,
            mastery_level=item.mastery_level,
            category=category_of(item.mastery_level).value,
            starred=item.starred,
            last_reviewed_at=item.last_reviewed_at,
            next_review_at=item.next_review_at,
        )


class BandResponse(BaseModel):
    band: str
    description: str
    threshold_low: int

    @classmethod
    def from_band(cls, value: ProficiencyBand) -> "BandResponse":
        return cls(band=value.band, description=value.description, threshold_low=value.threshold_low)


class SkillScore(BaseModel):
    skill: str = Field(min_length=1)
    score: float


class AssessmentRequest(BaseModel):
    scores: List[SkillScore]


class SkillBandResponse(BaseModel):
    skill: str
    score: int
    band: BandResponse

    @classmethod
    def from_skill(cls, value: SkillBand) -> "SkillBandResponse":
        return cls(skill=value.skill, score=value.score, band=BandResponse.from_band(value.band))


class AssessmentResponse(BaseModel):
    overall_score: int
    overall: BandResponse
    per_skill: List[SkillBandResponse]

    @classmethod
    def from_assessment(cls, assessment: Assessment) -> "AssessmentResponse":
        return cls(
            overall_score=assessment.overall_score,
            overall=BandResponse.from_band(assessment.overall),
            per_skill=[SkillBandResponse.from_skill(entry) for entry in assessment.per_skill],
        )


class CollectionProficiencyResponse(BaseModel):
    average_mastery: int
    band: BandResponse


class SummaryResponse(BaseModel):
    positive: int
    negative: int
    percentage: int

    @classmethod
    def from_summary(cls, summary: SessionSummary) -> "SummaryResponse":
        return cls(positive=summary.positive, negative=summary.negative, percentage=summary.percentage)


class SessionStartResponse(BaseModel):
    session_id: str
    collection_id: int
    mode: str
    source: str
    total: int
    item: ItemResponse


class OutcomeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: int = Field(alias="itemId")
    judgement: str


class OutcomeBody(BaseModel):
    item_id: int
    judgement: str
    delta: int
    positive: bool
    mastery_before: int
    mastery_after: int
    category_before: str
    category_after: str

    @classmethod
    def from_result(cls, result: OutcomeResult) -> "OutcomeBody":
        return cls(
            item_id=result.item_id,
            judgement=result.judgement.value,
            delta=result.delta,
            positive=result.positive,
            mastery_before=result.mastery_before,
            mastery_after=result.mastery_after,
            category_before=result.category_before.value,
            category_after=result.category_after.value,
        )


class OutcomeResponse(BaseModel):
    outcome: OutcomeBody
    completed: bool
    remaining: int
    next_item: Optional[ItemResponse] = None
    summary: Optional[SummaryResponse] = None
