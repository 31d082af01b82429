"""QuerySession accumulation, compilation and terminal operation tests."""

import logging
from datetime import timedelta

import pytest
from elasticsearch import ConnectionError as TransportConnectionError

from esquery import (
    BulkDelete,
    BulkIndex,
    BulkUpdate,
    DeletionFailedError,
    DocumentNotFoundError,
    EmptyBulkError,
    FieldSort,
    SearchError,
    WriteError,
    resolve_page,
)
from esquery.errors import ERROR_PREFIX

INDEX = "channel_product"


def _seed(fake_es, docs):
    for doc_id, doc in docs.items():
        fake_es.index(index=INDEX, id=doc_id, document=doc, refresh="wait_for")
    fake_es.calls.clear()


class TestResolvePage:
    def test_first_page_offset_zero(self):
        assert resolve_page(1, 10) == (0, 10)

    def test_third_page_offset(self):
        assert resolve_page(3, 10) == (20, 10)

    @pytest.mark.parametrize("page_index", [0, -3])
    def test_non_positive_page_index_is_first_page(self, page_index):
        assert resolve_page(page_index, 10) == (0, 10)

    @pytest.mark.parametrize("page_size", [0, -1])
    def test_non_positive_page_size_uses_default(self, page_size):
        assert resolve_page(2, page_size, default_size=10) == (10, 10)


class TestCompile:
    def test_empty_session_matches_everything(self, mock_es, make_session):
        assert make_session(mock_es).compile() == {"query": {"match_all": {}}}

    def test_required_convenience_forms(self, mock_es, make_session):
        session = make_session(mock_es)
        session.add_required("all")
        session.add_required("shop", ["CX0013"])
        session.add_required("sku", ["1", "2"])

        assert session.compile()["query"] == {
            "bool": {
                "must": [
                    {"match_all": {}},
                    {"match": {"shop": "CX0013"}},
                    {"terms": {"sku": ["1", "2"]}},
                ]
            }
        }

    def test_required_string_is_one_value(self, mock_es, make_session):
        session = make_session(mock_es).add_required("shop", "CX0013")

        assert session.compile()["query"] == {"bool": {"must": [{"match": {"shop": "CX0013"}}]}}

    def test_required_set_is_terms(self, mock_es, make_session):
        session = make_session(mock_es).add_required("sku", {"1", "2"})

        terms = session.compile()["query"]["bool"]["must"][0]["terms"]["sku"]
        assert sorted(terms) == ["1", "2"]

    def test_optional_exact_match_then_weight(self, mock_es, make_session):
        session = make_session(mock_es)
        session.add_optional("name", "apple", exact_match=True, weight=3)
        session.add_optional("brand", "acme", weight=1.5)

        assert session.compile()["query"]["bool"]["should"] == [
            {"constant_score": {"filter": {"match": {"name": "apple"}}, "boost": 3.0}},
            {"match": {"brand": {"query": "acme", "boost": 1.5}}},
        ]

    def test_sorts_keep_insertion_order(self, mock_es, make_session):
        session = make_session(mock_es)
        session.set_sort("score", ascending=False)
        session.set_geo_distance_sort("location", "31.2,121.4", unit="km")
        session.set_sort("id")

        assert session.compile()["sort"] == [
            {"score": {"order": "desc"}},
            {"_geo_distance": {"location": {"lat": 31.2, "lon": 121.4}, "order": "asc", "unit": "km"}},
            {"id": {"order": "asc"}},
        ]

    def test_collapse_last_write_wins_and_takes_inner_sorts(self, mock_es, make_session):
        session = make_session(mock_es)
        session.set_collapse("first", "shop", 1)
        session.add_collapse_sort(FieldSort("price"))
        session.set_collapse("cheapest", "sku", 2)

        assert session.compile()["collapse"] == {
            "field": "sku",
            "inner_hits": {"name": "cheapest", "size": 2, "sort": [{"price": {"order": "asc"}}]},
        }

    def test_collapse_sort_after_collapse_waits_for_next_collapse(
        self, mock_es, make_session, caplog
    ):
        caplog.set_level(logging.DEBUG, logger="esquery.session")
        session = make_session(mock_es)
        session.set_collapse("cheapest", "sku", 2)
        session.add_collapse_sort(FieldSort("price"))

        assert "sort" not in session.compile()["collapse"]["inner_hits"]
        assert any("set_collapse" in r.getMessage() for r in caplog.records)

    def test_compile_does_not_mutate_state(self, mock_es, make_session):
        session = make_session(mock_es).add_required("a", [1]).add_optional("b", 2)

        first = session.compile()
        second = session.compile()

        assert first == second
        assert len(session.required) == 1
        assert len(session.optional) == 1


class TestSearch:
    def test_passes_compiled_body_and_pagination(self, mock_es, make_session):
        session = make_session(mock_es).add_required("shop", ["CX0013"]).set_sort("id")

        session.search(INDEX, page_index=3, page_size=10)

        mock_es.search.assert_called_once_with(
            index=INDEX,
            from_=20,
            size=10,
            query={"bool": {"must": [{"match": {"shop": "CX0013"}}]}},
            sort=[{"id": {"order": "asc"}}],
        )

    def test_invalid_page_size_falls_back_to_default(self, mock_es, make_session):
        make_session(mock_es).search(INDEX, page_index=0, page_size=0)

        kwargs = mock_es.search.call_args.kwargs
        assert kwargs["from_"] == 0
        assert kwargs["size"] == 10

    def test_empty_session_returns_all_documents(self, fake_es, make_session):
        _seed(fake_es, {str(i): {"n": i} for i in range(5)})

        result = make_session(fake_es).search(INDEX, 1, 10)

        assert result.total == 5
        assert {h.id for h in result.hits} == {"0", "1", "2", "3", "4"}

    def test_terms_returns_union_of_values(self, fake_es, make_session):
        _seed(
            fake_es,
            {
                "1": {"color": "red"},
                "2": {"color": "blue"},
                "3": {"color": "green"},
                "4": {"color": "red"},
            },
        )

        result = make_session(fake_es).add_required("color", ["red", "blue"]).search(INDEX)

        assert {h.id for h in result.hits} == {"1", "2", "4"}

    def test_should_only_affects_eligibility_without_must(self, fake_es, make_session):
        _seed(fake_es, {"1": {"name": "apple"}, "2": {"name": "pear"}})

        only_should = make_session(fake_es).add_optional("name", "apple").search(INDEX)
        with_must = (
            make_session(fake_es).add_required("name").add_optional("name", "apple").search(INDEX)
        )

        assert [h.id for h in only_should.hits] == ["1"]
        assert {h.id for h in with_must.hits} == {"1", "2"}

    def test_collapse_limits_inner_hits(self, fake_es, make_session):
        _seed(fake_es, {str(i): {"sku": "S1", "price": 10 - i} for i in range(5)})

        session = make_session(fake_es)
        session.add_collapse_sort(FieldSort("price"))
        session.set_collapse("cheapest", "sku", 2)
        result = session.search(INDEX)

        assert len(result.hits) == 1
        inner = result.hits[0].inner_hits["cheapest"]
        assert len(inner) == 2
        assert [h.source["price"] for h in inner] == [6, 7]

    def test_backend_failure_is_wrapped(self, mock_es, make_session):
        mock_es.search.side_effect = TransportConnectionError("connection refused")

        with pytest.raises(SearchError) as exc_info:
            make_session(mock_es).search(INDEX)

        assert str(exc_info.value).startswith(ERROR_PREFIX)
        assert isinstance(exc_info.value.__cause__, TransportConnectionError)

    def test_count_uses_compiled_query(self, fake_es, make_session):
        _seed(fake_es, {"1": {"c": "a"}, "2": {"c": "b"}, "3": {"c": "a"}})

        assert make_session(fake_es).add_required("c", ["a"]).count(INDEX) == 2

    def test_geo_distance_sort_orders_by_distance(self, fake_es, make_session):
        _seed(
            fake_es,
            {
                "far": {"location": {"lat": 39.90, "lon": 116.40}},
                "near": {"location": {"lat": 31.25, "lon": 121.50}},
                "mid": {"location": {"lat": 30.27, "lon": 120.15}},
            },
        )

        session = make_session(fake_es).set_geo_distance_sort("location", "31.23,121.47")
        result = session.search(INDEX)

        assert [h.id for h in result.hits] == ["near", "mid", "far"]


class TestTimeout:
    def test_deadline_propagated_as_request_timeout(self, mock_es, make_session):
        session = make_session(mock_es).set_timeout(timedelta(seconds=5))

        session.search(INDEX)

        timeout = mock_es.options.call_args.kwargs["request_timeout"]
        assert 0 < timeout <= 5

    def test_expired_deadline_fails_without_request(self, mock_es, make_session):
        session = make_session(mock_es).set_timeout(0)

        with pytest.raises(SearchError, match="deadline exceeded"):
            session.search(INDEX)
        mock_es.search.assert_not_called()

    @pytest.mark.parametrize(
        ("operation", "error_cls"),
        [
            (lambda s: s.delete(INDEX, "1"), DeletionFailedError),
            (lambda s: s.bulk([BulkDelete(INDEX, "1")]), WriteError),
            (lambda s: s.save(INDEX, "1", {"a": 1}), WriteError),
        ],
    )
    def test_expired_deadline_fails_writes_without_request(
        self, mock_es, make_session, operation, error_cls
    ):
        session = make_session(mock_es).set_timeout(0)

        with pytest.raises(error_cls, match="deadline exceeded") as exc_info:
            operation(session)

        assert str(exc_info.value).startswith(ERROR_PREFIX)
        mock_es.delete.assert_not_called()
        mock_es.bulk.assert_not_called()
        mock_es.index.assert_not_called()


class TestSessionLifecycle:
    def test_session_is_single_use(self, mock_es, make_session):
        session = make_session(mock_es)
        session.search(INDEX)

        assert session.closed
        with pytest.raises(RuntimeError):
            session.add_required("a", [1])
        with pytest.raises(RuntimeError):
            session.search(INDEX)


class TestWrites:
    def test_save_then_search_sees_document(self, fake_es, make_session):
        make_session(fake_es).save(INDEX, "CX0013_1000068", {"product_id": 1000068, "name": "x"})

        result = make_session(fake_es).add_required("product_id", [1000068]).search(INDEX)

        assert [h.id for h in result.hits] == ["CX0013_1000068"]

    def test_save_replaces_whole_document(self, fake_es, make_session):
        make_session(fake_es).save(INDEX, "1", {"a": 1, "b": 2})
        make_session(fake_es).save(INDEX, "1", {"a": 3})

        found = make_session(fake_es).mget_by_id({INDEX: ["1"]})

        assert found == {INDEX: {"1": {"a": 3}}}

    def test_save_failure_is_write_error(self, mock_es, make_session):
        mock_es.index.side_effect = TransportConnectionError("down")

        with pytest.raises(WriteError):
            make_session(mock_es).save(INDEX, "1", {"a": 1})

    def test_delete_existing(self, fake_es, make_session):
        _seed(fake_es, {"1": {"a": 1}})

        make_session(fake_es).delete(INDEX, "1")

        assert make_session(fake_es).search(INDEX).total == 0

    def test_delete_missing_is_not_found(self, fake_es, make_session):
        with pytest.raises(DocumentNotFoundError):
            make_session(fake_es).delete(INDEX, "1000000")

    def test_delete_unexpected_result_is_failure(self, mock_es, make_session):
        mock_es.delete.return_value = {"result": "noop"}

        with pytest.raises(DeletionFailedError) as exc_info:
            make_session(mock_es).delete(INDEX, "1")

        assert not isinstance(exc_info.value, DocumentNotFoundError)
        mock_es.delete.assert_called_once_with(index=INDEX, id="1", refresh="wait_for")

    def test_empty_bulk_fails_before_backend(self, mock_es, make_session):
        with pytest.raises(EmptyBulkError):
            make_session(mock_es).bulk([])

        assert mock_es.method_calls == []

    def test_bulk_reports_per_item_outcome(self, fake_es, make_session):
        _seed(fake_es, {"1": {"name": "old"}})

        result = make_session(fake_es).bulk(
            [
                BulkIndex(INDEX, "2", {"name": "new"}),
                BulkUpdate(INDEX, "1", {"name": "renamed"}),
                BulkUpdate(INDEX, "404", {"name": "ghost"}),
                BulkDelete(INDEX, "2"),
            ]
        )

        assert [i.op_type for i in result.items] == ["index", "update", "update", "delete"]
        assert result.errors
        assert [i.id for i in result.failed] == ["404"]
        assert result.succeeded == 3
        assert make_session(fake_es).mget_by_id({INDEX: ["1", "2"]}) == {
            INDEX: {"1": {"name": "renamed"}}
        }

    def test_mget_without_ids_skips_backend(self, mock_es, make_session):
        assert make_session(mock_es).mget_by_id({}) == {}
        mock_es.mget.assert_not_called()


class TestBackendErrors:
    @pytest.mark.parametrize(
        ("method", "operation", "error_cls"),
        [
            ("bulk", lambda s: s.bulk([BulkIndex(INDEX, "1", {"a": 1})]), WriteError),
            ("delete", lambda s: s.delete(INDEX, "1"), DeletionFailedError),
            ("mget", lambda s: s.mget_by_id({INDEX: ["1"]}), SearchError),
            ("count", lambda s: s.count(INDEX), SearchError),
        ],
    )
    def test_backend_failure_is_wrapped(self, mock_es, make_session, method, operation, error_cls):
        cause = TransportConnectionError("connection refused")
        getattr(mock_es, method).side_effect = cause

        with pytest.raises(error_cls) as exc_info:
            operation(make_session(mock_es))

        assert str(exc_info.value).startswith(ERROR_PREFIX)
        assert exc_info.value.__cause__ is cause

    def test_delete_transport_failure_is_not_not_found(self, mock_es, make_session):
        mock_es.delete.side_effect = TransportConnectionError("connection refused")

        with pytest.raises(DeletionFailedError) as exc_info:
            make_session(mock_es).delete(INDEX, "1")

        assert not isinstance(exc_info.value, DocumentNotFoundError)
