from asset_review.guidelines import DEFAULT_ASSET_TYPES, seed_asset_types

from conftest import FakeStore


def test_presets_cover_the_four_asset_types():
    assert [a.name for a in DEFAULT_ASSET_TYPES] == ["banner", "logo", "print", "social"]
    assert all(a.guidelines.strip() for a in DEFAULT_ASSET_TYPES)


def test_seed_skips_existing(logo):
    store = FakeStore([logo])

    touched = seed_asset_types(store)

    assert touched == ["banner", "print", "social"]
    assert store.asset_types["logo"].guidelines == logo.guidelines


def test_seed_overwrite_keeps_messages(logo):
    store = FakeStore([logo])

    touched = seed_asset_types(store, overwrite=True)

    assert touched == ["banner", "logo", "print", "social"]
    preset = next(a for a in DEFAULT_ASSET_TYPES if a.name == "logo")
    assert store.asset_types["logo"].guidelines == preset.guidelines
    assert store.asset_types["logo"].pass_message == "Logo approved for use."
