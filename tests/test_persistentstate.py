import stat

from chezmoi.persistentstate import DatabasePersistentState

BUCKET = b"bucket"
KEY = b"key"
VALUE = b"value"


def test_persistent_state(tmp_path):
    config_dir = tmp_path / "home" / "user" / ".config" / "chezmoi"
    config_dir.mkdir(parents=True)
    path = config_dir / "chezmoistate.boltdb"

    b = DatabasePersistentState(path)
    assert not path.exists()

    b.delete(BUCKET, KEY)
    assert not path.exists()

    assert b.get(BUCKET, KEY) is None
    assert not path.exists()

    b.set(BUCKET, KEY, VALUE)
    assert path.is_file()

    assert b.get(BUCKET, KEY) == VALUE
    b.close()

    b = DatabasePersistentState(path)
    b.delete(BUCKET, KEY)
    assert b.get(BUCKET, KEY) is None
    b.close()


def test_values_persist_across_reopen(tmp_path):
    path = tmp_path / "state.db"
    with DatabasePersistentState(path) as b:
        b.set(BUCKET, KEY, VALUE)
        b.set(b"other", KEY, b"x")
    with DatabasePersistentState(path) as b:
        assert b.get(BUCKET, KEY) == VALUE
        assert b.get(b"other", KEY) == b"x"
        assert b.get(BUCKET, b"missing") is None


def test_set_overwrites(tmp_path):
    with DatabasePersistentState(tmp_path / "state.db") as b:
        b.set(BUCKET, KEY, VALUE)
        b.set(BUCKET, KEY, b"second")
        assert b.get(BUCKET, KEY) == b"second"


def test_creates_parent_directories_and_private_file(tmp_path):
    path = tmp_path / "a" / "b" / "state.db"
    with DatabasePersistentState(path) as b:
        b.set(BUCKET, KEY, VALUE)
    assert path.is_file()
    assert stat.S_IMODE(path.stat().st_mode) & 0o077 == 0