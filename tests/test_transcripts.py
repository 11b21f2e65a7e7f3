import pytest

from analyzer.core.state import Message, Speaker, Transcript
from analyzer.errors import TranscriptLoadError
from analyzer.transcripts import TranscriptStore, calculate_duration, parse_transcript_text


def _msg(content, speaker=Speaker.CLIENT, ts="00:00:01"):
    return Message(timestamp=ts, speaker=speaker, content=content)


def _transcript(tid, contents=(), summary=None, topics=None, category=None):
    return Transcript(
        id=tid,
        file_name=f"{tid}.txt",
        messages=tuple(_msg(c) for c in contents),
        summary=summary,
        topics=topics,
        category=category,
    )


def test_parser_maps_speakers_and_drops_unknown_lines():
    text = (
        "[00:00:01] AGENTE: Hola\n"
        "[00:00:02] CLIENTE:   Buenas  \n"
        "[00:00:03] SISTEMA: Transferencia\n"
        "[00:00:04] SUPERVISOR: ignorado\n"
        "linea sin formato\n"
        "\n"
    )
    messages = parse_transcript_text(text)
    assert [m.speaker for m in messages] == [Speaker.AGENT, Speaker.CLIENT, Speaker.SYSTEM]
    assert messages[1].content == "Buenas"
    assert messages[0].timestamp == "00:00:01"


def test_duration_from_first_and_last_timestamp():
    msgs = [_msg("a", ts="00:00:02"), _msg("b", ts="00:02:41")]
    assert calculate_duration(msgs) == "00:02:39"
    assert calculate_duration([]) == "00:00:00"
    assert calculate_duration([_msg("a", ts="start"), _msg("b", ts="end")]) == "start - end"


def test_load_reads_txt_files_and_skips_broken_ones(tmp_path):
    (tmp_path / "a.txt").write_text("[00:00:01] AGENTE: hola\n", encoding="utf-8")
    (tmp_path / "empty.txt").write_text("nothing useful here\n", encoding="utf-8")
    (tmp_path / "broken.txt").write_bytes(b"\xff\xfe\xfa not utf-8")
    (tmp_path / "notes.md").write_text("[00:00:01] AGENTE: ignored\n", encoding="utf-8")

    store = TranscriptStore(tmp_path)
    assert store.load() == 2
    assert [t.id for t in store.list_transcripts()] == ["a", "empty"]
    assert store.get("empty").messages == ()
    assert store.loaded


def test_load_missing_directory_raises(tmp_path):
    with pytest.raises(TranscriptLoadError):
        TranscriptStore(tmp_path / "nope").load()


def test_search_ranks_topic_match_above_message_match(tmp_path):
    store = TranscriptStore(tmp_path)
    store.add(_transcript("b", contents=["my internet is down"]))
    store.add(_transcript("a", contents=["hello"], topics=["Internet outage"]))
    page = store.search("INTERNET")
    assert [r.transcript.id for r in page.results] == ["a", "b"]
    assert [r.relevance_score for r in page.results] == [3, 1]
    assert page.results[1].matched_messages[0].content == "my internet is down"


def test_search_scores_messages_summary_and_topics_together(tmp_path):
    store = TranscriptStore(tmp_path)
    store.add(_transcript("x", contents=["router broken", "router again"], summary="Router replaced", topics=["router"]))
    page = store.search("router")
    assert page.results[0].relevance_score == 2 + 2 + 3


def test_search_excludes_zero_scores_and_keeps_ties_in_order(tmp_path):
    store = TranscriptStore(tmp_path)
    for tid in ("t1", "t2", "t3"):
        store.add(_transcript(tid, contents=["factura"]))
    store.add(_transcript("t4", contents=["nada"]))
    page = store.search("factura")
    assert [r.transcript.id for r in page.results] == ["t1", "t2", "t3"]
    assert page.total == 3


def test_search_pagination_and_category_filter(tmp_path):
    store = TranscriptStore(tmp_path)
    for i in range(5):
        store.add(_transcript(f"t{i}", contents=["cargo"], category="billing_issues" if i % 2 else None))
    page = store.search("cargo", page=2, limit=2)
    assert [r.transcript.id for r in page.results] == ["t2", "t3"]
    assert page.total_pages == 3

    filtered = store.search("cargo", category="billing_issues")
    assert [r.transcript.id for r in filtered.results] == ["t1", "t3"]


def test_updates_on_unknown_id_leave_store_untouched(tmp_path):
    store = TranscriptStore(tmp_path)
    store.add(_transcript("known"))
    before = store.get_statistics()
    assert store.get("missing") is None
    assert store.update_classification("missing", "x") is None
    assert store.update_topics("missing", ["a"]) is None
    assert store.update_summary("missing", "s") is None
    assert store.get_statistics() == before


def test_update_classification_keeps_summary_unless_given(tmp_path):
    store = TranscriptStore(tmp_path)
    store.add(_transcript("t", summary="original"))
    store.update_classification("t", "billing_issues")
    assert store.get("t").summary == "original"
    store.update_classification("t", "technical_issues", "new summary")
    t = store.get("t")
    assert (t.category, t.summary) == ("technical_issues", "new summary")


def test_update_topics_overwrites_wholesale(tmp_path):
    store = TranscriptStore(tmp_path)
    store.add(_transcript("t", topics=["old"]))
    store.update_topics("t", ["new one", "new two"])
    assert store.get("t").topics == ["new one", "new two"]


def test_statistics_after_classifying_one_of_two(corpus_dir):
    store = TranscriptStore(corpus_dir)
    store.load()
    store.update_classification("sample_01", "technical_issues")
    stats = store.get_statistics()
    assert stats["total_transcripts"] == 2
    assert stats["categories_distribution"] == {"technical_issues": 1, "unclassified": 1}
    assert stats["average_messages_per_transcript"] == pytest.approx((5 + 4) / 2)


def test_statistics_on_empty_corpus(tmp_path):
    stats = TranscriptStore(tmp_path).get_statistics()
    assert stats == {"total_transcripts": 0, "categories_distribution": {}, "average_messages_per_transcript": 0.0}


def test_frequent_topics_group_case_insensitively_and_are_stable(tmp_path):
    store = TranscriptStore(tmp_path)
    store.add(_transcript("a", topics=["Internet Outage", "Router"], category="technical_issues"))
    store.add(_transcript("b", topics=["internet  outage"], category="complaints_claims"))
    store.add(_transcript("c", topics=["Billing"]))
    first = store.get_frequent_topics()
    assert first[0].topic == "internet outage"
    assert first[0].frequency == 2
    assert first[0].relevant_transcripts == ["a", "b"]
    assert first[0].categories == ["complaints_claims", "technical_issues"]
    assert [t.topic for t in first[1:]] == ["router", "billing"]
    assert store.get_frequent_topics() == first

    only_tech = store.get_frequent_topics("technical_issues")
    assert [t.topic for t in only_tech] == ["internet outage", "router"]
