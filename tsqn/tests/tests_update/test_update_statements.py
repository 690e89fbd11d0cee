"""
tsqn Update -- Statement Semantics

Covers:
  - Scalar replacement and the shape of the change record
  - Transform functions and the arguments they receive
  - Nested merges vs wholesale Replace / [v] and DELETE / []
  - No-op detection (identity and equal scalars)
  - ALL wildcard expansion, explicit keys win
  - WHERE guards (short-circuit, context, nested)
  - DEFAULT materialisation
  - CONTEXT threading and shallow override
  - Threading an existing record forward
"""

import pytest

from tsqn.types import ALL, CONTEXT, DEFAULT, DELETE, META, MISSING, WHERE, Replace, UndoEntry
from tsqn.update import update

# ============================================================================
# 1. Scalars and the record shape
# ============================================================================


class TestScalarUpdates:
    def test_example_record(self):
        data = {"user": {"name": "Ann", "age": 30}, "active": True}
        changes = update(data, {"user": {"age": lambda v: v + 1}, "active": False})

        assert data == {"user": {"name": "Ann", "age": 31}, "active": False}
        assert changes == {
            "user": {"age": 31, META: {"age": UndoEntry(30)}},
            "active": False,
            META: {"active": UndoEntry(True)},
        }

    def test_only_named_keys_change(self, state):
        before_prefs = dict(state["prefs"])
        update(state, {"active": False, "profile": "p"})
        assert state["active"] is False
        assert state["profile"] == "p"
        assert state["prefs"] == before_prefs
        assert state["user"]["name"] == "Ann"

    def test_new_key_records_missing_original(self):
        data = {}
        changes = update(data, {"n": 1})
        assert data == {"n": 1}
        assert changes[META]["n"].original is MISSING
        assert changes[META]["n"].was_missing

    def test_set_to_none_is_a_change(self):
        data = {"a": 1}
        changes = update(data, {"a": None})
        assert data == {"a": None}
        assert changes == {"a": None, META: {"a": UndoEntry(1)}}

    def test_tuple_is_a_plain_value(self):
        data = {}
        update(data, {"point": (1, 2)})
        assert data == {"point": (1, 2)}
        assert update(data, {"point": (1, 2)}) is None

    def test_no_statement_is_noop(self, state):
        assert update(state, None) is None

    def test_empty_statement_returns_none(self, state):
        assert update(state, {}) is None


# ============================================================================
# 2. No-op guarantee
# ============================================================================


class TestNoOp:
    def test_same_scalar(self, state):
        assert update(state, {"active": True}) is None

    def test_same_object_identity(self, state):
        prefs = state["prefs"]
        assert update(state, {"prefs": lambda v: v}) is None
        assert state["prefs"] is prefs

    def test_nested_equal_values(self, state):
        assert update(state, {"user": {"name": "Ann", "age": 30}}) is None

    def test_equal_but_different_type_is_a_change(self):
        data = {"flag": 1}
        changes = update(data, {"flag": True})
        assert changes is not None
        assert data["flag"] is True

    def test_replace_with_equal_scalar(self):
        data = {"a": 1}
        assert update(data, {"a": [1]}) is None

    def test_pass_through_transform_on_absent_key(self):
        data = {}
        assert update(data, {"n": lambda v: v}) is None
        assert data == {}

    def test_transform_returning_none_for_absent_keys(self, state):
        assert update(state, {"user": {"nickname": lambda v: None, "email": lambda v: v}}) is None
        assert "nickname" not in state["user"]

    def test_literal_none_still_creates_key(self):
        data = {}
        changes = update(data, {"n": None})
        assert data == {"n": None}
        assert changes[META]["n"].was_missing


# ============================================================================
# 3. Transforms
# ============================================================================


class TestTransforms:
    def test_receives_value_data_key_context(self):
        seen = []

        def transform(value, data, key, ctx):
            seen.append((value, data, key, ctx))
            return value

        data = {"a": 1}
        assert update(data, {CONTEXT: {"k": 1}, "a": transform}) is None
        assert seen == [(1, data, "a", {"k": 1})]

    def test_absent_key_reads_as_none(self):
        data = {}
        update(data, {"n": lambda v: 0 if v is None else v + 1})
        assert data == {"n": 0}

    def test_sibling_access_through_data(self):
        data = {"qty": 3, "price": 2.0, "total": 0}
        update(data, {"total": lambda v, d: d["qty"] * d["price"]})
        assert data["total"] == 6.0

    def test_transform_returning_nested_statement(self, state):
        changes = update(state, {"user": lambda u: {"name": u["name"].upper()}})
        assert state["user"]["name"] == "ANN"
        assert changes == {"user": {"name": "ANN", META: {"name": UndoEntry("Ann")}}}

    def test_transform_returning_replace_wrapper(self, state):
        changes = update(state, {"user": {"tags": lambda v: [v + ["c"]]}})
        assert state["user"]["tags"] == ["a", "b", "c"]
        assert changes["user"][META]["tags"].original == ["a", "b"]

    def test_transform_returning_delete(self, state):
        update(state, {"prefs": {"lang": lambda v: []}})
        assert state["prefs"] == {"theme": "dark"}


# ============================================================================
# 4. Replace and delete
# ============================================================================


class TestReplaceAndDelete:
    def test_replace_object_wholesale(self, state):
        old = state["prefs"]
        changes = update(state, {"prefs": [{"theme": "light"}]})
        assert state["prefs"] == {"theme": "light"}
        assert changes == {"prefs": {"theme": "light"}, META: {"prefs": UndoEntry(old)}}

    def test_replace_value_is_copied(self):
        value = {"x": [1]}
        data = {}
        update(data, {"v": [value]})
        assert data["v"] == value
        assert data["v"] is not value

    def test_tagged_replace(self, state):
        update(state, {"prefs": Replace({"theme": "light"})})
        assert state["prefs"] == {"theme": "light"}

    def test_replace_with_callable_stores_it(self):
        def handler():
            return 1

        data = {}
        update(data, {"on_click": [handler]})
        assert data["on_click"] is handler

    def test_delete_key(self, state):
        changes = update(state, {"prefs": {"lang": []}})
        assert "lang" not in state["prefs"]
        assert changes == {"prefs": {"lang": MISSING, META: {"lang": UndoEntry("en")}}}

    def test_tagged_delete(self, state):
        update(state, {"profile": DELETE})
        assert "profile" not in state

    def test_delete_absent_key_is_noop(self, state):
        assert update(state, {"nope": []}) is None


# ============================================================================
# 5. ALL wildcard
# ============================================================================


class TestWildcard:
    def test_applies_to_every_key(self):
        data = {"a": 1, "b": 2, "c": 3}
        update(data, {ALL: lambda v: v * 10})
        assert data == {"a": 10, "b": 20, "c": 30}

    def test_explicit_wins(self):
        data = {"a": 1, "b": 2, "c": 3}
        update(data, {ALL: lambda v: v * 10, "b": 0})
        assert data == {"a": 10, "b": 0, "c": 30}

    def test_receives_each_key(self):
        data = {"a": 1, "b": 2}
        update(data, {ALL: lambda v, d, k: f"{k}{v}"})
        assert data == {"a": "a1", "b": "b2"}

    def test_nested_wildcard_over_list(self, state):
        changes = update(state, {"cart": {"items": {ALL: {"qty": lambda q: q * 2}}}})
        assert [i["qty"] for i in state["cart"]["items"]] == [2, 4]
        assert changes == {
            "cart": {
                "items": {
                    0: {"qty": 2, META: {"qty": UndoEntry(1)}},
                    1: {"qty": 4, META: {"qty": UndoEntry(2)}},
                }
            }
        }

    def test_statement_not_mutated_by_expansion(self):
        statement = {ALL: 0}
        update({"a": 1, "b": 2}, statement)
        assert statement == {ALL: 0}


# ============================================================================
# 6. WHERE guards
# ============================================================================


class TestGuards:
    def test_false_guard_skips_siblings(self, state):
        changes = update(state, {WHERE: lambda d: not d["active"], "active": False, "profile": "x"})
        assert changes is None
        assert state["active"] is True
        assert state["profile"] is None

    def test_guard_checked_before_wildcard(self):
        data = {"a": 1}
        calls = []
        update(data, {WHERE: lambda d: False, ALL: lambda v: calls.append(v)})
        assert calls == []

    def test_nested_guard_per_item(self, state):
        update(state, {"cart": {"items": {ALL: {WHERE: lambda i: i["qty"] > 1, "price": 0.5}}}})
        assert [i["price"] for i in state["cart"]["items"]] == [2.5, 0.5]

    def test_guard_sees_context(self, state):
        statement = {
            CONTEXT: {"min_age": 18},
            "user": {WHERE: lambda u, ctx: u["age"] >= ctx["min_age"], "name": "Adult"},
        }
        update(state, statement)
        assert state["user"]["name"] == "Adult"

    def test_guard_on_missing_value(self, state):
        statement = {"profile": {WHERE: lambda p: p is not None, DEFAULT: {"bio": ""}, "bio": "hi"}}
        assert update(state, statement) is None
        assert state["profile"] is None


# ============================================================================
# 7. DEFAULT
# ============================================================================


class TestDefault:
    def test_materialises_default_for_none(self, state):
        default = {"bio": "", "links": []}
        changes = update(state, {"profile": {DEFAULT: default, "bio": "hi"}})
        assert state["profile"] == {"bio": "hi", "links": []}
        assert default == {"bio": "", "links": []}
        assert changes == {"profile": {"bio": "hi", "links": []}, META: {"profile": UndoEntry(None)}}

    def test_materialises_default_for_absent_key(self):
        data = {}
        changes = update(data, {"settings": {DEFAULT: {"lang": "en"}, "lang": "fr"}})
        assert data == {"settings": {"lang": "fr"}}
        assert changes[META]["settings"].was_missing

    def test_default_ignored_for_existing_object(self, state):
        changes = update(state, {"prefs": {DEFAULT: {"theme": "x"}, "lang": "fr"}})
        assert state["prefs"] == {"theme": "dark", "lang": "fr"}
        assert changes == {"prefs": {"lang": "fr", META: {"lang": UndoEntry("en")}}}

    def test_default_replaces_scalar(self):
        data = {"slot": 5}
        update(data, {"slot": {DEFAULT: {"v": 0}, "v": lambda v: v + 1}})
        assert data == {"slot": {"v": 1}}

    def test_default_copies_are_independent(self):
        default = {"items": []}
        data = {"a": None, "b": None}
        update(data, {ALL: {DEFAULT: default, "items": lambda v: [v + [1]]}})
        assert data["a"] == {"items": [1]}
        assert data["a"] is not data["b"]
        assert data["a"]["items"] is not data["b"]["items"]

    def test_guard_reapplied_to_fresh_default(self):
        data = {"p": None}
        statement = {"p": {WHERE: lambda v: v is None, DEFAULT: {"n": 0}, "n": 1}}
        changes = update(data, statement)
        assert data == {"p": {"n": 0}}
        assert changes == {"p": {"n": 0}, META: {"p": UndoEntry(None)}}

    def test_guard_passing_on_both_values(self):
        data = {"p": None}
        statement = {"p": {WHERE: lambda v: v is None or v["n"] == 0, DEFAULT: {"n": 0}, "n": 1}}
        update(data, statement)
        assert data == {"p": {"n": 1}}


# ============================================================================
# 8. CONTEXT
# ============================================================================


class TestContext:
    def test_child_overrides_parent(self):
        data = {"a": {"x": 0}, "b": 0}
        statement = {
            CONTEXT: {"rate": 1, "unit": "kg"},
            "a": {CONTEXT: {"rate": 2}, "x": lambda v, d, k, ctx: (ctx["rate"], ctx["unit"])},
            "b": lambda v, d, k, ctx: ctx["rate"],
        }
        update(data, statement)
        assert data == {"a": {"x": (2, "kg")}, "b": 1}

    def test_context_reaches_wildcard_transforms(self, state):
        statement = {
            CONTEXT: {"discount": 0.5},
            "cart": {"items": {ALL: {"price": lambda p, d, k, ctx: p * ctx["discount"]}}},
        }
        update(state, statement)
        assert [i["price"] for i in state["cart"]["items"]] == [1.25, 0.5]

    def test_context_with_default(self):
        data = {"order": None}
        statement = {
            CONTEXT: {"currency": "EUR"},
            "order": {DEFAULT: {"currency": None}, "currency": lambda v, d, k, ctx: ctx["currency"]},
        }
        update(data, statement)
        assert data == {"order": {"currency": "EUR"}}


# ============================================================================
# 9. Threading an existing record
# ============================================================================


class TestExistingChanges:
    def test_extends_record_in_place(self):
        data = {"a": 0, "b": 0}
        first = update(data, {"a": 1})
        second = update(data, {"b": 2}, first)
        assert second is first
        assert first == {"a": 1, "b": 2, META: {"a": UndoEntry(0), "b": UndoEntry(0)}}

    def test_returns_existing_record_when_nothing_new(self):
        data = {"a": 0}
        first = update(data, {"a": 1})
        assert update(data, {"a": 1}, first) is first

    def test_false_guard_keeps_existing_record(self):
        data = {"a": 0}
        first = update(data, {"a": 1})
        assert update(data, {WHERE: lambda d: False, "a": 5}, first) is first
        assert data["a"] == 1
