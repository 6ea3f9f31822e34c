from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Integer,
    Text,
    TIMESTAMP,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Group(Base):
    __tablename__ = "group"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Group {self.name!r} active={self.active}>"


class Part(Base):
    __tablename__ = "part"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    subject = Column(Text, nullable=False)
    group_name = Column(Text, nullable=False)
    poster = Column(Text, nullable=False, default="")
    posted = Column(TIMESTAMP(timezone=True))
    total_segments = Column(Integer, nullable=False, default=0)
    binary_id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("binary.id"),
        index=True,
    )

    binary = relationship("Binary", back_populates="parts")
    segments = relationship(
        "Segment", back_populates="part", order_by="Segment.number"
    )

    def __repr__(self) -> str:
        return f"<Part {self.id} {self.subject!r}>"


class Segment(Base):
    __tablename__ = "segment"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    part_id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("part.id"),
        nullable=False,
        index=True,
    )
    number = Column(Integer, nullable=False)
    size = Column(BigInteger, nullable=False, default=0)
    message_id = Column(Text, nullable=False)

    part = relationship("Part", back_populates="segments")


class Binary(Base):
    __tablename__ = "binary"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    hash = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    poster = Column(Text, nullable=False, default="")
    group_name = Column(Text, nullable=False)
    posted = Column(TIMESTAMP(timezone=True))
    total_parts = Column(Integer, nullable=False)

    parts = relationship("Part", back_populates="binary", order_by="Part.id")

    @property
    def size(self) -> int:
        """Total bytes across every retrieved segment."""
        return sum(seg.size or 0 for part in self.parts for seg in part.segments)

    def __repr__(self) -> str:
        return f"<Binary {self.hash} {self.name!r} {len(self.parts)}/{self.total_parts}>"


class Release(Base):
    __tablename__ = "release"
    __table_args__ = (UniqueConstraint("name", "posted"),)

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    name = Column(Text, nullable=False)
    original_name = Column(Text, nullable=False)
    search_name = Column(Text, nullable=False, index=True)
    posted = Column(TIMESTAMP(timezone=True))
    poster = Column(Text, nullable=False, default="")
    # NULL when the source group is not registered; group_name is always kept.
    group_id = Column(Integer, ForeignKey("group.id"))
    group_name = Column(Text, nullable=False)
    size = Column(BigInteger, nullable=False, default=0)
    nzb = Column(Text, nullable=False)

    group = relationship("Group")
