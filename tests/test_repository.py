"""Sync Repository test cases."""
import pytest
from sqlmodel import Session, select

from framework.repository import QueryObject, Repository, UnitOfWork
from entities import Hero, Membership, Team


class TestFind:
    """Key and predicate lookups."""

    def test_find_by_primary_key(self, uow: UnitOfWork, heroes):
        repo = uow.repository(Hero)
        hero = repo.find(heroes[0].id)
        assert hero is not None
        assert hero.name == "Deadpond"

    def test_find_missing_key_returns_none(self, uow: UnitOfWork, heroes):
        assert uow.repository(Hero).find(9999) is None

    def test_find_composite_key(self, uow: UnitOfWork, session: Session):
        session.add(Membership(team_id=1, hero_id=2, role="leader"))
        session.commit()

        membership = uow.repository(Membership).find(1, 2)
        assert membership is not None
        assert membership.role == "leader"
        assert uow.repository(Membership).find(2, 1) is None

    def test_find_without_key_raises(self, uow: UnitOfWork):
        with pytest.raises(ValueError):
            uow.repository(Hero).find()

    def test_find_one_by_predicate(self, uow: UnitOfWork, heroes):
        hero = uow.repository(Hero).find_one(Hero.name == "Spider")
        assert hero is not None
        assert hero.age == 50
        assert uow.repository(Hero).find_one(Hero.name == "Nobody") is None

    def test_find_first_ascending_and_descending(self, uow: UnitOfWork, heroes):
        repo = uow.repository(Hero)
        assert repo.find_first(Hero.age, False).name == "Rusty"
        assert repo.find_first(Hero.age, True).name == "Spider"
        assert repo.find_first(Hero.age, True, Hero.age < 45).name == "Black Lion"

    def test_find_by_and_find_all(self, uow: UnitOfWork, heroes):
        repo = uow.repository(Hero)
        assert repo.find_by(name="Rusty").age == 10
        team_members = repo.find_all(team_id=heroes[0].team_id)
        assert {h.name for h in team_members} == {"Deadpond", "Rusty"}

    def test_unknown_filter_field_raises(self, uow: UnitOfWork, heroes):
        with pytest.raises(ValueError, match="no attribute 'power'"):
            uow.repository(Hero).find_by(power="flight")

    def test_select_query_passthrough(self, uow: UnitOfWork, heroes):
        rows = uow.repository(Hero).select_query(
            "SELECT * FROM heroes WHERE age > :age ORDER BY age", age=25
        )
        assert [h.name for h in rows] == ["Deadpond", "Black Lion", "Spider"]
        assert all(isinstance(h, Hero) for h in rows)

    def test_count(self, uow: UnitOfWork, heroes):
        repo = uow.repository(Hero)
        assert repo.count() == 5
        assert repo.count(Hero.age >= 30) == 3
        assert repo.count(team_id=heroes[0].team_id) == 2


class TestFilter:
    """Paged filter with ordering and includes."""

    def test_filter_predicate_and_order(self, uow: UnitOfWork, heroes):
        rows = uow.repository(Hero).filter(Hero.age > 15, order_by=Hero.age.desc())
        assert [h.age for h in rows] == [50, 40, 30, 20]

    def test_filter_paging_skips_previous_pages(self, uow: UnitOfWork, heroes):
        rows = uow.repository(Hero).filter(order_by=Hero.age, page=2, page_size=2)
        assert [h.age for h in rows] == [30, 40]

    def test_filter_ignores_page_without_page_size(self, uow: UnitOfWork, heroes):
        assert len(uow.repository(Hero).filter(page=2)) == 5

    def test_filter_callable_order_by(self, uow: UnitOfWork, heroes):
        rows = uow.repository(Hero).filter(order_by=lambda statement: statement.order_by(Hero.name))
        assert rows[0].name == "Black Lion"

    def test_filter_order_by_list(self, uow: UnitOfWork, heroes):
        rows = uow.repository(Hero).filter(order_by=[Hero.team_id.desc(), Hero.age])
        assert [h.name for h in rows[:2]] == ["Rusty", "Deadpond"]

    def test_filter_with_query_object(self, uow: UnitOfWork, heroes):
        query = QueryObject(Hero.age >= 20).and_(Hero.age <= 40)
        rows = uow.repository(Hero).filter(query, order_by=Hero.age)
        assert [h.age for h in rows] == [20, 30, 40]

    def test_filter_with_includes(self, uow: UnitOfWork, heroes):
        rows = uow.repository(Hero).filter(Hero.team_id.is_not(None), includes=[Hero.team])
        assert {h.team.name for h in rows} == {"Avengers"}

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (-1, 5)])
    def test_invalid_paging_raises(self, uow: UnitOfWork, page, page_size):
        with pytest.raises(ValueError):
            uow.repository(Hero).filter(page=page, page_size=page_size)

    def test_get_all_and_queryable(self, uow: UnitOfWork, heroes, session: Session):
        repo = uow.repository(Hero)
        assert len(repo.get_all()) == 5
        statement = repo.queryable().where(Hero.age < 25)
        assert len(session.exec(statement).all()) == 2


class TestWrites:
    """Insert / update / delete go through the unit of work."""

    def test_insert_and_save(self, uow: UnitOfWork, session: Session):
        repo = uow.repository(Hero)
        repo.insert(Hero(name="Storm", age=35))
        assert uow.save_changes() == 1

        stored = session.exec(select(Hero).where(Hero.name == "Storm")).one()
        assert stored.id is not None

    def test_insert_range(self, uow: UnitOfWork):
        repo = uow.repository(Hero)
        inserted = repo.insert_range([Hero(name="A"), Hero(name="B"), Hero(name="C")])
        assert len(inserted) == 3
        assert uow.save_changes() == 3
        assert repo.count() == 3

    def test_update_persistent(self, uow: UnitOfWork, heroes):
        repo = uow.repository(Hero)
        hero = repo.find(heroes[1].id)
        hero.age = 11
        assert repo.update(hero) is hero
        assert uow.save_changes() == 1
        assert repo.find_by(name="Rusty").age == 11

    def test_update_detached_entity(self, uow: UnitOfWork, heroes, session: Session):
        hero = heroes[2]
        session.expunge(hero)
        hero.name = "Spider-Man"

        tracked = uow.repository(Hero).update(hero)
        assert tracked is hero
        assert uow.save_changes() == 1
        assert uow.repository(Hero).find_by(name="Spider-Man") is not None

    def test_update_transient_entity_merges(self, uow: UnitOfWork, heroes):
        target = heroes[3]
        replacement = Hero(id=target.id, name="Tarantula II", age=21, team_id=None)

        tracked = uow.repository(Hero).update(replacement)
        assert tracked is not replacement
        assert tracked is target
        uow.save_changes()
        assert uow.repository(Hero).find(target.id).name == "Tarantula II"

    def test_update_unchanged_writes_nothing(self, uow: UnitOfWork, heroes):
        repo = uow.repository(Hero)
        repo.update(repo.find(heroes[0].id))
        assert uow.save_changes() == 0

    def test_delete_by_instance(self, uow: UnitOfWork, heroes):
        repo = uow.repository(Hero)
        assert repo.delete(repo.find(heroes[0].id)) is True
        assert uow.save_changes() == 1
        assert repo.find(heroes[0].id) is None

    def test_delete_by_id(self, uow: UnitOfWork, heroes):
        repo = uow.repository(Hero)
        assert repo.delete(heroes[4].id) is True
        uow.save_changes()
        assert repo.count() == 4

    def test_delete_missing_id_returns_false(self, uow: UnitOfWork, heroes):
        assert uow.repository(Hero).delete(12345) is False
        assert uow.save_changes() == 0

    def test_delete_pending_cancels_insert(self, uow: UnitOfWork):
        repo = uow.repository(Hero)
        hero = repo.insert(Hero(name="Ghost"))
        repo.delete(hero)
        assert uow.save_changes() == 0
        assert repo.count() == 0


class TestStandalone:
    """Repository used without a unit of work."""

    def test_repository_applies_state_to_session(self, session: Session):
        repo = Repository(session, Team)
        repo.insert(Team(name="X-Men"))
        session.commit()
        assert repo.find_by(name="X-Men") is not None

    def test_get_repository_shares_session(self, session: Session):
        heroes_repo = Repository(session, Hero)
        teams_repo = heroes_repo.get_repository(Team)
        assert teams_repo.session is session
        assert teams_repo.model is Team

    def test_model_is_required(self, session: Session):
        with pytest.raises(TypeError):
            Repository(session)

    def test_model_from_class_attribute(self, session: Session):
        class TeamRepository(Repository[Team]):
            model = Team

        assert TeamRepository(session).model is Team
