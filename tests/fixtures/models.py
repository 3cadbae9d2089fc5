"""Tables used by the tests."""

from sqlalchemy import Integer, String, func, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column


class Base(DeclarativeBase):
    pass


class Widget(Base):
    """A thing a test can create and expect to disappear."""

    __tablename__ = "widget"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)


def count_widgets(session: Session) -> int:
    return session.execute(select(func.count()).select_from(Widget)).scalar_one()
