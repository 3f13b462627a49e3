"""Tests for the conversation store and storage backends."""

import json

import pytest

from cortex_code.client.storage import JsonFileStorage, MemoryStorage
from cortex_code.client.store import (
    CHATS_KEY,
    INSTRUCTIONS_KEY,
    THEME_KEY,
    ConversationStore,
)
from cortex_code.models.conversations import (
    Conversation,
    ImageAttachment,
    Sender,
    Turn,
    dump_conversations,
    load_conversations,
)


def make_conversation(id="1", turns=None):
    return Conversation(
        id=id,
        title="Sorting",
        turns=turns
        if turns is not None
        else [
            Turn(sender=Sender.USER, text="How do I sort?"),
            Turn(sender=Sender.ASSISTANT, text="Use `sorted()`."),
            Turn(sender=Sender.USER, text="In reverse?"),
            Turn(sender=Sender.ASSISTANT, text="Pass `reverse=True`."),
        ],
    )


def test_collection_round_trip() -> None:
    image = ImageAttachment(
        mime_type="image/png", data="AAAA", data_url="data:image/png;base64,AAAA"
    )
    conversation = make_conversation()
    conversation.turns[0].images.append(image)

    raw = dump_conversations([conversation])

    assert load_conversations(raw) == [conversation]
    assert json.loads(raw)[0]["turns"][1] == {
        "sender": "assistant",
        "text": "Use `sorted()`.",
        "images": [],
    }


def test_load_missing_collection(store: ConversationStore) -> None:
    assert store.load() == []


def test_save_writes_single_key(store: ConversationStore, storage: MemoryStorage) -> None:
    store.conversations = [make_conversation("1"), make_conversation("2")]
    store.save()

    reloaded = ConversationStore(storage)
    assert [c.id for c in reloaded.load()] == ["1", "2"]


def test_create_titles_and_orders(store: ConversationStore, storage: MemoryStorage) -> None:
    older = store.create("What is a generator expression in Python?", "Image analysis")
    newer = store.create("", "Image analysis")

    assert older.title == "What is a generator expression"
    assert newer.title == "Image analysis"
    assert store.conversations == [newer, older]
    assert older.id != newer.id
    # Creation alone does not persist
    assert storage.get_item(CHATS_KEY) is None


def test_rename(store: ConversationStore, storage: MemoryStorage) -> None:
    store.conversations = [make_conversation()]

    assert store.rename("1", "  Sorting lists ") is True
    assert store.get("1").title == "Sorting lists"
    assert load_conversations(storage.get_item(CHATS_KEY))[0].title == "Sorting lists"


@pytest.mark.parametrize("title", ["", "   ", None])
def test_rename_blank_is_ignored(store: ConversationStore, title) -> None:
    store.conversations = [make_conversation()]

    assert store.rename("1", title) is False
    assert store.get("1").title == "Sorting"


def test_delete(store: ConversationStore) -> None:
    store.conversations = [make_conversation("1"), make_conversation("2")]

    assert store.delete("1") is True
    assert store.delete("missing") is False
    assert [c.id for c in store.conversations] == ["2"]


def test_truncate() -> None:
    conversation = make_conversation()

    ConversationStore.truncate(conversation, 1)

    assert [t.text for t in conversation.turns] == ["How do I sort?"]


def test_delete_user_turn_with_reply() -> None:
    conversation = make_conversation()

    assert ConversationStore.delete_user_turn(conversation, 0) == 2
    assert [t.text for t in conversation.turns] == ["In reverse?", "Pass `reverse=True`."]


def test_delete_trailing_user_turn() -> None:
    conversation = make_conversation()
    del conversation.turns[3]

    assert ConversationStore.delete_user_turn(conversation, 2) == 1
    assert len(conversation.turns) == 2


def test_delete_user_turn_rejects_assistant_turn() -> None:
    with pytest.raises(ValueError):
        ConversationStore.delete_user_turn(make_conversation(), 1)


def test_instructions(store: ConversationStore, storage: MemoryStorage) -> None:
    assert store.instructions == ""
    store.instructions = "Prefer pathlib."
    assert storage.get_item(INSTRUCTIONS_KEY) == "Prefer pathlib."


def test_theme_defaults_and_toggles(storage: MemoryStorage) -> None:
    storage.set_item(THEME_KEY, "sepia")
    store = ConversationStore(storage)

    assert store.theme == "dark"
    assert store.toggle_theme() == "light"
    assert store.toggle_theme() == "dark"
    assert storage.get_item(THEME_KEY) == "dark"

    with pytest.raises(ValueError):
        store.theme = "sepia"


def test_json_file_storage_persists(tmp_path) -> None:
    path = tmp_path / "state" / "storage.json"
    storage = JsonFileStorage(path)
    store = ConversationStore(storage)
    store.conversations = [make_conversation()]
    store.save()
    store.instructions = "Be brief."
    storage.remove_item(THEME_KEY)

    reopened = ConversationStore(JsonFileStorage(path))

    assert reopened.load() == [make_conversation()]
    assert reopened.instructions == "Be brief."
    assert set(json.loads(path.read_text(encoding="utf-8"))) == {CHATS_KEY, INSTRUCTIONS_KEY}
    assert list(path.parent.glob(".storage-*")) == []


def test_json_file_storage_rejects_non_object(tmp_path) -> None:
    path = tmp_path / "storage.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        JsonFileStorage(path)
