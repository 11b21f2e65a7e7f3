from analyzer.topics import aggregate_topics, normalize_topic


def test_normalize_topic():
    assert normalize_topic("  Internet\tOUTAGE ") == "internet outage"
    assert normalize_topic("") == ""


def test_frequency_counts_distinct_transcripts_not_mentions():
    result = aggregate_topics([
        ("t1", "billing_issues", ["Charge", "charge", "CHARGE"]),
        ("t2", None, ["charge"]),
    ])
    assert len(result) == 1
    assert result[0].frequency == 2
    assert result[0].categories == ["billing_issues"]


def test_limit_and_tie_order():
    result = aggregate_topics(
        [
            ("t1", None, ["alpha", "beta"]),
            ("t2", None, ["gamma", "beta"]),
        ],
        limit=2,
    )
    assert [(t.topic, t.frequency) for t in result] == [("beta", 2), ("alpha", 1)]


def test_missing_and_blank_topics_are_ignored():
    assert aggregate_topics([("t1", None, None), ("t2", None, ["  "])]) == []
