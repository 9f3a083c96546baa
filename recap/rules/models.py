from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class TrackingRules(BaseModel):
    interval_seconds: float = Field(default=60.0, gt=0)
    atomic_increment: bool = True
    write_user_profile: bool = True
    materialize_summary: bool = False


class BucketRules(BaseModel):
    # Percent-of-average lower bounds
    very_engaged: int = 150
    engaged: int = 100
    moderate: int = 50

    @model_validator(mode="after")
    def check_order(self) -> "BucketRules":
        if not (self.very_engaged > self.engaged > self.moderate >= 0):
            raise ValueError("bucket thresholds must satisfy very_engaged > engaged > moderate >= 0")
        return self


class AggregationRules(BaseModel):
    max_concurrency: int = Field(default=8, ge=1, le=64)
    default_title: str = "Tutoriel sans titre"
    use_summary: bool = False
    buckets: BucketRules = Field(default_factory=BucketRules)


class StoreRules(BaseModel):
    backend: Literal["memory", "sqlite", "firestore"] = "sqlite"
    sqlite_path: str = "recap.db"
    firestore_project: str | None = None


class OpsRules(BaseModel):
    required_env: list[str] = Field(default_factory=list)


class Rules(BaseModel):
    project: ProjectRules
    tracking: TrackingRules = Field(default_factory=TrackingRules)
    aggregation: AggregationRules = Field(default_factory=AggregationRules)
    store: StoreRules = Field(default_factory=StoreRules)
    ops: OpsRules = Field(default_factory=OpsRules)

    @model_validator(mode="after")
    def check_summary(self) -> "Rules":
        if self.aggregation.use_summary and not self.tracking.materialize_summary:
            raise ValueError("aggregation.use_summary requires tracking.materialize_summary")
        if self.tracking.materialize_summary and not self.tracking.atomic_increment:
            raise ValueError("tracking.materialize_summary requires tracking.atomic_increment")
        return self
