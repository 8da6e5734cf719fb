from onboarding.validators import clean_content_bundle, collect_errors


def test_collect_errors_reports_paths():
    errors = collect_errors("faq", [{"question": "Q?", "answer": "A"}, {"question": 3}])
    paths = [e["path"] for e in errors]
    assert "faq[1].question" in paths
    assert any(p == "faq[1]" for p in paths)  # missing "answer"


def test_collect_errors_requires_a_list():
    assert collect_errors("team", {"name": "x"}) == [{"path": "team", "message": "section 'team' must be an array"}]


def test_clean_bundle_keeps_only_requested_valid_records():
    raw = {
        "faq": [{"question": "Q?", "answer": "A"}, "junk", {"question": "no answer"}],
        "team": [{"name": "Ana", "role": "Chef"}],
        "menu": "not a list",
        "unrequested": [{"x": 1}],
    }
    bundle = clean_content_bundle(raw, ["faq", "team", "menu"])
    assert bundle == {
        "faq": [{"question": "Q?", "answer": "A"}],
        "team": [{"name": "Ana", "role": "Chef"}],
    }


def test_clean_bundle_non_object_is_empty():
    assert clean_content_bundle(["a"], ["faq"]) == {}
    assert clean_content_bundle(None, ["faq"]) == {}
