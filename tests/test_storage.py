"""Tests for the record stores."""

import gspread
import pytest

from treasury.config import GoogleSheetsSettings
from treasury.services.storage import (
    GLOBAL_NAMESPACE,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    LocalFileRecordStore,
    NotFoundError,
    StorageError,
)
from treasury.services.storage.google_sheets import CELL_LIMIT, CHUNK_SIZE, RECORD_COLUMNS


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the record store, cell limit included."""

    def __init__(self):
        self.rows = [list(RECORD_COLUMNS)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_rows(self, rows, value_input_option=None):
        for row in rows:
            if any(len(str(cell)) > CELL_LIMIT for cell in row):
                raise RuntimeError(f"Your input contains more than the maximum of {CELL_LIMIT} characters in a single cell.")
        self.rows.extend([str(cell) for cell in row] for row in rows)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self, sheet=None, error=None):
        self.sheet = sheet or FakeWorksheet()
        self.error = error

    def get_records_sheet(self):
        if self.error:
            raise self.error
        return self.sheet


class CountingSheetsClient(FakeSheetsClient):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def get_records_sheet(self):
        self.calls += 1
        return super().get_records_sheet()


@pytest.fixture(params=["memory", "file", "sheets"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRecordStore()
    if request.param == "file":
        return LocalFileRecordStore(tmp_path / "data")
    return GoogleSheetsRecordStore(FakeSheetsClient())


class TestRecordStoreContract:
    """Behavior every record store shares."""

    async def test_missing_record_is_none(self, store):
        """Test that unknown records read as None."""
        assert await store.get("jane", "accounts") is None

    async def test_put_then_get(self, store):
        """Test that stored values come back equal."""
        value = [{"id": "1", "name": "Wallet", "balance": "500"}]
        await store.put("jane", "accounts", value)
        assert await store.get("jane", "accounts") == value

    async def test_overwrite(self, store):
        """Test that a second put replaces the record."""
        await store.put("jane", "baseCurrency", "CNY")
        await store.put("jane", "baseCurrency", "USD")
        assert await store.get("jane", "baseCurrency") == "USD"

    async def test_namespaces_are_separate(self, store):
        """Test that users don't see each other's records."""
        await store.put("jane", "baseCurrency", "EUR")
        await store.put(GLOBAL_NAMESPACE, "current_user", {"id": "jane"})
        assert await store.get("john", "baseCurrency") is None
        assert await store.get(GLOBAL_NAMESPACE, "current_user") == {"id": "jane"}

    async def test_delete(self, store):
        """Test delete and its return value."""
        await store.put("jane", "transactions", [])
        assert await store.delete("jane", "transactions") is True
        assert await store.get("jane", "transactions") is None
        assert await store.delete("jane", "transactions") is False


class TestInMemoryRecordStore:
    """Tests specific to the in-memory store."""

    async def test_values_are_copied(self):
        """Test that callers can't change stored records by accident."""
        store = InMemoryRecordStore()
        value = [{"id": "1"}]
        await store.put("jane", "accounts", value)
        value.append({"id": "2"})

        stored = await store.get("jane", "accounts")
        stored.append({"id": "3"})

        assert await store.get("jane", "accounts") == [{"id": "1"}]
        assert store.keys("jane") == ["accounts"]


class TestLocalFileRecordStore:
    """Tests specific to the JSON file store."""

    async def test_one_file_per_namespace(self, tmp_path):
        """Test the on-disk layout."""
        store = LocalFileRecordStore(tmp_path)
        await store.put("jane", "baseCurrency", "CNY")
        await store.put(GLOBAL_NAMESPACE, "current_user", {"id": "jane"})
        assert sorted(p.name for p in tmp_path.glob("*.json")) == ["global.json", "jane.json"]

    async def test_survives_new_instance(self, tmp_path):
        """Test that records persist across store instances."""
        await LocalFileRecordStore(tmp_path).put("jane", "baseCurrency", "HKD")
        assert await LocalFileRecordStore(tmp_path).get("jane", "baseCurrency") == "HKD"

    async def test_rejects_path_like_namespace(self, tmp_path):
        """Test that namespaces can't escape the data directory."""
        store = LocalFileRecordStore(tmp_path)
        with pytest.raises(StorageError):
            await store.get("../etc", "passwd")

    async def test_corrupt_file(self, tmp_path):
        """Test that unreadable documents raise StorageError."""
        (tmp_path / "jane.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            await LocalFileRecordStore(tmp_path).get("jane", "accounts")


class TestGoogleSheetsRecordStore:
    """Tests specific to the Sheets store."""

    async def test_row_layout(self):
        """Test namespace | key | part | value | updated_at rows."""
        sheet = FakeWorksheet()
        store = GoogleSheetsRecordStore(FakeSheetsClient(sheet))
        await store.put("jane", "baseCurrency", "CNY")

        assert sheet.rows[0] == RECORD_COLUMNS
        namespace, key, part, value, updated_at = sheet.rows[1]
        assert (namespace, key, part, value) == ("jane", "baseCurrency", "0", '"CNY"')
        assert updated_at

    async def test_overwrite_replaces_rows(self):
        """Test that overwriting leaves only the new rows."""
        sheet = FakeWorksheet()
        store = GoogleSheetsRecordStore(FakeSheetsClient(sheet))
        await store.put("jane", "baseCurrency", "CNY")
        await store.put("jane", "baseCurrency", "USD")
        assert len(sheet.rows) == 2
        assert sheet.rows[1][3] == '"USD"'

    async def test_long_record_is_split(self):
        """Test that a record longer than one cell is stored in parts."""
        sheet = FakeWorksheet()
        store = GoogleSheetsRecordStore(FakeSheetsClient(sheet))
        transactions = [
            {"id": f"tx{i}", "note": "Groceries at the weekend market " * 10, "amount": "12.50"}
            for i in range(500)
        ]

        await store.put("jane", "transactions", transactions)

        parts = [row for row in sheet.rows[1:] if row[1] == "transactions"]
        assert len(parts) > 1
        assert [row[2] for row in parts] == [str(i) for i in range(len(parts))]
        assert all(len(row[3]) <= CHUNK_SIZE for row in parts)
        assert await store.get("jane", "transactions") == transactions

    async def test_long_record_shrinks(self):
        """Test that leftover parts are removed when a record gets shorter."""
        sheet = FakeWorksheet()
        store = GoogleSheetsRecordStore(FakeSheetsClient(sheet))
        await store.put("jane", "transactions", ["x" * CHUNK_SIZE] * 3)
        await store.put("jane", "transactions", [])

        assert len(sheet.rows) == 2
        assert await store.get("jane", "transactions") == []

    async def test_interrupted_write_keeps_newest(self):
        """Test that rows left over from an older write are ignored."""
        sheet = FakeWorksheet()
        sheet.rows.append(["jane", "baseCurrency", "0", '"CNY"', "2024-05-01T00:00:00+00:00"])
        sheet.rows.append(["jane", "baseCurrency", "0", '"USD"', "2024-05-02T00:00:00+00:00"])
        store = GoogleSheetsRecordStore(FakeSheetsClient(sheet))

        assert await store.get("jane", "baseCurrency") == "USD"

        await store.put("jane", "baseCurrency", "EUR")
        assert len(sheet.rows) == 2
        assert await store.get("jane", "baseCurrency") == "EUR"

    async def test_unserializable_value_is_not_retried(self):
        """Test that a value json can't encode fails before touching the sheet."""
        client = CountingSheetsClient()
        store = GoogleSheetsRecordStore(client)

        with pytest.raises(StorageError):
            await store.put("jane", "accounts", {1, 2})
        assert client.calls == 0

    async def test_backend_failure_is_storage_error(self):
        """Test that client errors are wrapped."""
        store = GoogleSheetsRecordStore(FakeSheetsClient(error=RuntimeError("quota")))
        with pytest.raises(StorageError):
            await store.get("jane", "accounts")

    async def test_corrupt_cell(self):
        """Test that a non-JSON cell raises StorageError."""
        sheet = FakeWorksheet()
        sheet.rows.append(["jane", "accounts", "0", "{oops", ""])
        store = GoogleSheetsRecordStore(FakeSheetsClient(sheet))
        with pytest.raises(StorageError):
            await store.get("jane", "accounts")

    async def test_missing_part(self):
        """Test that a gap in the parts raises StorageError."""
        sheet = FakeWorksheet()
        sheet.rows.append(["jane", "accounts", "1", "[]", "2024-05-01T00:00:00+00:00"])
        store = GoogleSheetsRecordStore(FakeSheetsClient(sheet))
        with pytest.raises(StorageError):
            await store.get("jane", "accounts")


class TestGoogleSheetsClient:
    """Tests for spreadsheet lookup."""

    def test_missing_spreadsheet(self, tmp_path):
        """Test that an unknown spreadsheet id raises NotFoundError."""

        class MissingSpreadsheetClient:
            def open_by_key(self, key):
                raise gspread.SpreadsheetNotFound(key)

        credentials = tmp_path / "service_account.json"
        credentials.write_text("{}", encoding="utf-8")
        client = GoogleSheetsClient(GoogleSheetsSettings(
            credentials_path=str(credentials),
            spreadsheet_id="missing",
        ))
        client._client = MissingSpreadsheetClient()

        with pytest.raises(NotFoundError):
            client.get_spreadsheet()
