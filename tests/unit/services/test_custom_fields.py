from relgraph.services.custom_fields import CustomFieldRegistry


class _Handler:
    def validate(self, fragment, own_row) -> bool:
        return True

    def apply(self, fragment, own_row) -> None:
        pass


def test_lookup_by_ui() -> None:
    handler = _Handler()
    registry = CustomFieldRegistry({"signature": handler})

    assert registry.get("signature") is handler
    assert registry.get("other") is None
    assert registry.get(None) is None
    assert "signature" in registry


def test_register_replaces_existing_handler() -> None:
    registry = CustomFieldRegistry({"signature": _Handler()})
    replacement = _Handler()

    registry.register("signature", replacement)

    assert registry.get("signature") is replacement
    assert len(registry) == 1
