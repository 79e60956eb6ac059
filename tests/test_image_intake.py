import base64

import pytest

from schemas import ListingForm, parse_url_images
from services.image_intake import ImageIntake, IncomingFile, IntakeState


def image(name: str, data: bytes = b"\x89PNG", content_type: str = "image/png") -> IncomingFile:
    return IncomingFile.from_bytes(name, content_type, data)


class RecordingUploader:
    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    async def __call__(self, file: IncomingFile):
        self.calls.append(file.filename)
        if file.filename in self.fail_for:
            return None
        return f"https://cdn.example.com/uploads/{file.filename}"


def broken_file(name: str) -> IncomingFile:
    async def _read() -> bytes:
        raise OSError("disk went away")

    return IncomingFile(filename=name, content_type="image/jpeg", reader=_read)


@pytest.mark.asyncio
async def test_batch_of_eleven_is_rejected_without_uploads():
    uploader = RecordingUploader()
    emitted = []
    intake = ImageIntake(uploader, images=["https://a/existing.jpg"], on_change=emitted.append)

    result = await intake.select([image(f"{i}.png") for i in range(11)])

    assert result.accepted is False
    assert uploader.calls == []
    assert emitted == []
    assert intake.images == ["https://a/existing.jpg"]
    assert intake.state == IntakeState.IDLE
    assert intake.notices[-1].title == "Too many files"
    assert intake.notices[-1].is_warning


@pytest.mark.asyncio
async def test_batch_of_ten_is_uploaded_in_order():
    uploader = RecordingUploader()
    emitted = []
    intake = ImageIntake(uploader, images=["https://a/existing.jpg"], on_change=emitted.append)

    result = await intake.select([image(f"{i}.png") for i in range(10)])

    assert result.accepted is True
    assert len(uploader.calls) == 10
    expected = [f"https://cdn.example.com/uploads/{i}.png" for i in range(10)]
    assert result.added == expected
    assert intake.images == ["https://a/existing.jpg", *expected]
    assert emitted == [intake.images]
    assert intake.notices[-1].description == "Successfully added 10 image(s)"


@pytest.mark.asyncio
async def test_non_image_files_are_dropped_from_batch():
    uploader = RecordingUploader()
    intake = ImageIntake(uploader)

    files = [image("a.png"), image("notes.txt", content_type="text/plain"), image("b.jpg", content_type="image/jpeg")]
    result = await intake.select(files)

    assert result.accepted is True
    assert uploader.calls == ["a.png", "b.jpg"]
    assert len(intake.images) == 2


@pytest.mark.asyncio
async def test_batch_without_images_is_rejected():
    uploader = RecordingUploader()
    intake = ImageIntake(uploader)

    result = await intake.select([image("notes.txt", content_type="text/plain")])

    assert result.accepted is False
    assert uploader.calls == []
    assert intake.images == []
    assert intake.notices[-1].title == "Invalid files"


@pytest.mark.asyncio
async def test_failed_upload_falls_back_to_data_uri():
    uploader = RecordingUploader(fail_for={"b.png"})
    intake = ImageIntake(uploader)

    result = await intake.select([image("a.png"), image("b.png", data=b"raw-bytes")])

    expected_inline = "data:image/png;base64," + base64.b64encode(b"raw-bytes").decode("ascii")
    assert result.added == ["https://cdn.example.com/uploads/a.png", expected_inline]


@pytest.mark.asyncio
async def test_unreadable_file_is_reported_and_batch_continues():
    uploader = RecordingUploader(fail_for={"broken.jpg"})
    intake = ImageIntake(uploader)

    result = await intake.select([broken_file("broken.jpg"), image("ok.png")])

    assert result.accepted is True
    assert result.added == ["https://cdn.example.com/uploads/ok.png"]
    titles = [notice.title for notice in intake.notices]
    assert "Upload error" in titles
    assert intake.notices[-1].description == "Successfully added 1 image(s)"


@pytest.mark.asyncio
async def test_batch_is_rejected_while_uploading():
    uploader = RecordingUploader()
    intake = ImageIntake(uploader)
    intake.state = IntakeState.UPLOADING

    result = await intake.select([image("a.png")])

    assert result.accepted is False
    assert uploader.calls == []
    assert intake.notices[-1].title == "Upload in progress"


@pytest.mark.asyncio
async def test_drag_and_drop_transitions():
    intake = ImageIntake(RecordingUploader())

    intake.drag_enter()
    assert intake.state == IntakeState.DRAGGING
    intake.drag_leave()
    assert intake.state == IntakeState.IDLE

    intake.drag_enter()
    result = await intake.drop([image("a.png")])
    assert result.accepted is True
    assert intake.state == IntakeState.IDLE


def test_remove_image_keeps_other_entries_in_order():
    emitted = []
    intake = ImageIntake(RecordingUploader(), images=["zero", "one", "two"], on_change=emitted.append)

    removed = intake.remove_image(1)

    assert removed == "one"
    assert intake.images == ["zero", "two"]
    assert emitted == [["zero", "two"]]
    assert intake.discarded == ["one"]


def test_remove_image_out_of_range():
    intake = ImageIntake(RecordingUploader(), images=["zero"])

    with pytest.raises(IndexError):
        intake.remove_image(3)
    assert intake.images == ["zero"]


def test_clear_all_images_emits_empty_list():
    emitted = []
    intake = ImageIntake(RecordingUploader(), images=["zero", "one"], on_change=emitted.append)

    intake.clear_all_images()

    assert intake.images == []
    assert emitted == [[]]
    assert intake.notices[-1].title == "All images cleared"


def test_parse_url_images_trims_and_drops_empties():
    assert parse_url_images(" https://a/1.jpg ,, https://a/2.jpg , ") == ["https://a/1.jpg", "https://a/2.jpg"]
    assert parse_url_images("") == []


def test_form_images_are_followed_by_url_images():
    form = ListingForm(
        title="Olympus OM-1",
        price=900,
        images=["https://cdn.example.com/uploads/x.jpg", "data:image/png;base64,AAAA"],
        url_images="https://a/1.jpg, https://a/2.jpg",
    )

    fields = form.to_fields()

    assert fields["images"] == [
        "https://cdn.example.com/uploads/x.jpg",
        "data:image/png;base64,AAAA",
        "https://a/1.jpg",
        "https://a/2.jpg",
    ]
    assert "url_images" not in fields
    assert fields["price"] == 900


def test_form_prefill_splits_inline_and_remote_images():
    class Stored:
        title = "Minolta X-700"
        description = "Program SLR"
        brand = "Minolta"
        condition = "Good"
        price = 700.0
        year = "1981"
        images = ["https://a/1.jpg", "data:image/png;base64,AAAA", "https://a/2.jpg"]

    form = ListingForm.from_listing(Stored())

    assert form.images == ["data:image/png;base64,AAAA"]
    assert form.url_images == "https://a/1.jpg, https://a/2.jpg"
