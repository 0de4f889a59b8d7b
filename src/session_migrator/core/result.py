"""
Result Pattern Implementation
Type-safe error handling for migrations and section writers
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar('T')


class Result(BaseModel, Generic[T]):
    """Result type for type-safe error handling"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> 'Result[T]':
        """Create a successful result"""
        return cls(success=True, data=data)

    @classmethod
    def err(cls, error: str) -> 'Result[T]':
        """Create an error result"""
        return cls(success=False, error=error)

    def is_ok(self) -> bool:
        """Check if result is successful"""
        return self.success

    def is_err(self) -> bool:
        """Check if result is an error"""
        return not self.success

    def unwrap(self) -> T:
        """Unwrap successful result or raise on error"""
        if self.success and self.data is not None:
            return self.data
        raise ValueError(f"Result unwrap failed: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Unwrap successful result or return default"""
        if self.success and self.data is not None:
            return self.data
        return default

    def map(self, func):
        """Map successful result through a function"""
        if self.success and self.data is not None:
            try:
                return Result.ok(func(self.data))
            except Exception as e:
                return Result.err(str(e))
        return self


class SkipRecord(BaseModel):
    """One entity a writer could not resolve and left untouched"""
    entity_key: str
    reason: str


class WriteReport(BaseModel):
    """
    Outcome of one section writer

    Per-entity failures are absorbed into ``skipped`` so a migration covering
    hundreds of entities still reports partial success.
    """
    section: str
    success: bool = True
    written: int = 0
    skipped: List[SkipRecord] = Field(default_factory=list)
    fallbacks: List[SkipRecord] = Field(default_factory=list)

    def skip(self, entity_key: str, reason: str) -> None:
        """Record a skipped entity"""
        self.skipped.append(SkipRecord(entity_key=entity_key, reason=reason))

    def fallback(self, entity_key: str, reason: str) -> None:
        """Record a write that went through with reduced fidelity"""
        self.fallbacks.append(SkipRecord(entity_key=entity_key, reason=reason))

    def merge(self, other: "WriteReport") -> None:
        """Fold a sub-report into this one"""
        self.written += other.written
        self.skipped.extend(other.skipped)
        self.fallbacks.extend(other.fallbacks)
        self.success = self.success and other.success

    def __bool__(self) -> bool:
        return self.success
