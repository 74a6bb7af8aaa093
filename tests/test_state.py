"""Entity state mapping test cases."""
import pytest
from sqlmodel import Session

from framework.repository import ObjectState, StateHelper
from entities import Hero


@pytest.fixture
def stored_hero(session: Session) -> Hero:
    hero = Hero(name="Stored", age=40)
    session.add(hero)
    session.commit()
    session.refresh(hero)
    return hero


def test_transient_is_detached(session: Session):
    assert StateHelper.convert_state(Hero(name="New"), session) is ObjectState.DETACHED


def test_pending_is_added(session: Session):
    hero = Hero(name="New")
    session.add(hero)
    assert StateHelper.convert_state(hero, session) is ObjectState.ADDED


def test_persistent_unchanged_then_modified(session: Session, stored_hero: Hero):
    assert StateHelper.convert_state(stored_hero, session) is ObjectState.UNCHANGED
    stored_hero.age = 41
    assert StateHelper.convert_state(stored_hero, session) is ObjectState.MODIFIED


def test_marked_for_delete_is_deleted(session: Session, stored_hero: Hero):
    session.delete(stored_hero)
    assert StateHelper.convert_state(stored_hero, session) is ObjectState.DELETED
    # Without the session only flushed deletes are visible
    assert StateHelper.convert_state(stored_hero) is ObjectState.UNCHANGED
    session.flush()
    assert StateHelper.convert_state(stored_hero) is ObjectState.DELETED


def test_expunged_is_detached(session: Session, stored_hero: Hero):
    session.expunge(stored_hero)
    assert StateHelper.convert_state(stored_hero, session) is ObjectState.DETACHED


def test_apply_detached_expunges(session: Session, stored_hero: Hero):
    StateHelper.apply_state(session, stored_hero, ObjectState.DETACHED)
    assert stored_hero not in session


def test_apply_unchanged_discards_edits(session: Session, stored_hero: Hero):
    stored_hero.name = "Edited"
    StateHelper.apply_state(session, stored_hero, ObjectState.UNCHANGED)
    assert stored_hero.name == "Stored"
    assert not session.dirty


def test_apply_accepts_state_values(session: Session):
    hero = StateHelper.apply_state(session, Hero(name="ByValue"), "added")
    assert hero in session.new


def test_pending_entries_only_lists_writes(session: Session, stored_hero: Hero):
    session.add(Hero(name="Fresh"))
    states = sorted(e.state.value for e in StateHelper.pending_entries(session))
    assert states == ["added"]
    assert {e.state for e in StateHelper.entries(session)} == {ObjectState.ADDED, ObjectState.UNCHANGED}
