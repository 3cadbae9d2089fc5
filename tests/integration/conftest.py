"""Integration test configuration.

Tests in this directory drive whole pytest runs through ``pytester`` with the
txisolate plugin enabled from the generated project's rootdir conftest.

Run with: pytest tests/integration/ -m integration
"""

import pytest

STORE_MODELS = '''
from sqlalchemy import Integer, String, func, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Widget(Base):
    __tablename__ = "widget"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)


def count_widgets(session):
    return session.execute(select(func.count()).select_from(Widget)).scalar_one()
'''

PLUGIN_CONFTEST = '''
import pytest

from store_models import Base, Widget

pytest_plugins = ["txisolate.plugin"]


@pytest.fixture(scope="session")
def txisolate_metadata():
    return Base.metadata


@pytest.fixture
def widget(db_session):
    widget = Widget(name="sprocket")
    db_session.add(widget)
    db_session.flush()
    return widget
'''


@pytest.fixture
def isolated_project(pytester):
    """A pytester project with the plugin enabled and the Widget schema."""
    pytester.makepyfile(store_models=STORE_MODELS)
    pytester.makeconftest(PLUGIN_CONFTEST)
    return pytester
