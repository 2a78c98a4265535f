"""Batch export, sequential fallback and result assembly"""
import pytest
import requests

from frame_exporter.errors import (
    AccessDenied, InvalidReference, NoFramesExported, NoFramesFound, RateLimited, UpstreamUnavailable,
)
from frame_exporter.exporter import FrameExporter, assemble_result
from frame_exporter.models import ExportableUnit

from conftest import FakeResponse, file_payload, images_payload, node

FIGMA_URL = "https://service/file/XYZ?node-id=10:20"


def _two_frame_file():
    return file_payload([
        node('0:1', 'Page 1', 'CANVAS', [node('f1', 'Home', 'FRAME'), node('f2', 'Login', 'FRAME')]),
    ])


def _many_frames_file(count):
    frames = [node(f'{i}:1', f'Frame {i}', 'FRAME') for i in range(count)]
    return file_payload([node('0:1', 'Page', 'CANVAS', frames)])


class TestAssembleResult:

    def test_drops_units_without_urls_and_keeps_order(self):
        units = [ExportableUnit('a', 'A'), ExportableUnit('b', 'B'), ExportableUnit('c', 'C')]

        result = assemble_result("Doc", "KEY", units, {'c': 'https://img/c', 'a': 'https://img/a'})

        assert [frame.id for frame in result.frames] == ['a', 'c']
        assert result.total_units_found == 3
        assert result.exported_units_count == 2

    def test_total_found_can_exceed_exported_units(self):
        units = [ExportableUnit('a', 'A')]
        result = assemble_result("Doc", "KEY", units, {'a': 'https://img/a'}, total_units_found=12)
        assert result.total_units_found == 12

    def test_nothing_resolved_raises(self):
        with pytest.raises(NoFramesExported) as exc_info:
            assemble_result("Doc", "KEY", [ExportableUnit('a', 'A')], {'a': ''})
        assert exc_info.value.status_code == 500


class TestExport:

    def test_end_to_end(self, exporter, session, sleeper):
        session.queue(
            FakeResponse(200, _two_frame_file()),
            FakeResponse(200, images_payload({'f1': 'https://img/1', 'f2': 'https://img/2'})),
        )

        result = exporter.export(FIGMA_URL)

        assert result.to_response() == {
            'documentName': 'Test File',
            'documentId': 'XYZ',
            'frames': [
                {'id': 'f1', 'name': 'Home', 'nodeId': 'f1', 'imageUrl': 'https://img/1'},
                {'id': 'f2', 'name': 'Login', 'nodeId': 'f2', 'imageUrl': 'https://img/2'},
            ],
            'totalFrames': 2,
            'exportedFrames': 2,
        }
        file_call, image_call = session.calls
        assert file_call['url'] == "https://api.figma.com/v1/files/XYZ"
        assert file_call['params'] == {'depth': 2}
        assert image_call['url'] == "https://api.figma.com/v1/images/XYZ"
        assert image_call['params'] == {'ids': 'f1,f2', 'format': 'png', 'scale': 1}
        assert sleeper.waits == [0.5]

    def test_token_header_is_set(self, client, session):
        assert session.headers['X-Figma-Token'] == 'test-token'

    def test_untitled_document(self, exporter, session):
        data = _two_frame_file()
        del data['name']
        session.queue(FakeResponse(200, data), FakeResponse(200, images_payload({'f1': 'https://img/1'})))

        result = exporter.export(FIGMA_URL)

        assert result.document_name == 'Untitled'
        assert result.exported_units_count == 1
        assert result.total_units_found == 2

    def test_truncates_to_eight_frames(self, exporter, session):
        images = {f'{i}:1': f'https://img/{i}' for i in range(8)}
        session.queue(FakeResponse(200, _many_frames_file(11)), FakeResponse(200, images_payload(images)))

        result = exporter.export(FIGMA_URL)

        requested = session.calls[1]['params']['ids'].split(',')
        assert requested == [f'{i}:1' for i in range(8)]
        assert result.total_units_found == 11
        assert result.exported_units_count == 8

    def test_max_frames_is_configurable(self, client, session, sleeper):
        exporter = FrameExporter(client, max_frames=2, sleep=sleeper)
        session.queue(FakeResponse(200, _many_frames_file(5)),
                      FakeResponse(200, images_payload({'0:1': 'u0', '1:1': 'u1'})))

        result = exporter.export(FIGMA_URL)

        assert session.calls[1]['params']['ids'] == '0:1,1:1'
        assert result.total_units_found == 5

    def test_order_preserved_across_pages_with_partial_export(self, exporter, session):
        data = file_payload([
            node('1:0', 'P1', 'CANVAS', [node('1:1', 'F1a', 'FRAME'), node('1:2', 'F1b', 'FRAME')]),
            node('2:0', 'P2', 'CANVAS', [node('2:1', 'F2a', 'FRAME')]),
        ])
        session.queue(FakeResponse(200, data), FakeResponse(200, images_payload({
            '2:1': 'https://img/2a', '1:2': 'https://img/1b', '1:1': None,
        })))

        result = exporter.export(FIGMA_URL)

        assert [frame.name for frame in result.frames] == ['F1b', 'F2a']
        assert result.total_units_found == 3

    @pytest.mark.parametrize("max_frames", [0, -1])
    def test_max_frames_below_one_is_rejected(self, client, sleeper, max_frames):
        with pytest.raises(ValueError):
            FrameExporter(client, max_frames=max_frames, sleep=sleeper)

    def test_export_images_sends_every_unit_it_is_given(self, client, session, sleeper):
        exporter = FrameExporter(client, max_frames=2, sleep=sleeper)
        units = [ExportableUnit(f"{i}:1", f"Frame {i}") for i in range(3)]
        session.queue(FakeResponse(200, images_payload({u.id: f"https://img/{u.id}" for u in units})))

        images = exporter.export_images("XYZ", units)

        assert session.calls[0]["params"]["ids"] == "0:1,1:1,2:1"
        assert len(images) == 3

    def test_close_releases_session(self, exporter, session):
        exporter.close()
        assert session.closed

    def test_invalid_url_makes_no_request(self, exporter, session):
        with pytest.raises(InvalidReference) as exc_info:
            exporter.export("https://example.com/not-figma")
        assert exc_info.value.status_code == 400
        assert session.calls == []

    def test_access_denied(self, exporter, session):
        session.queue(FakeResponse(403, text="Forbidden"))
        with pytest.raises(AccessDenied):
            exporter.export(FIGMA_URL)

    def test_file_fetch_rate_limited_after_retries(self, exporter, session, sleeper):
        session.queue(*[FakeResponse(429) for _ in range(4)])

        with pytest.raises(RateLimited) as exc_info:
            exporter.export(FIGMA_URL)

        assert exc_info.value.to_dict() == {'error': 'rate_limit'}
        assert len(session.calls) == 4
        assert sleeper.waits == [2, 5, 12]

    def test_other_upstream_errors(self, exporter, session):
        session.queue(FakeResponse(502, text="Bad gateway"))
        with pytest.raises(UpstreamUnavailable) as exc_info:
            exporter.export(FIGMA_URL)
        assert exc_info.value.message == "Figma API error: 502"
        assert exc_info.value.status_code == 500

    def test_network_error_on_file_fetch(self, exporter, session):
        session.queue(requests.ConnectionError("down"))
        with pytest.raises(UpstreamUnavailable):
            exporter.export(FIGMA_URL)

    def test_invalid_file_payload(self, exporter, session):
        session.queue(FakeResponse(200, ['not', 'an', 'object']))
        with pytest.raises(UpstreamUnavailable):
            exporter.export(FIGMA_URL)

    def test_no_frames_found(self, exporter, session):
        session.queue(FakeResponse(200, file_payload([
            node('1:0', 'Page', 'CANVAS', [node('1:1', 'Just text', 'TEXT')]),
        ])))

        with pytest.raises(NoFramesFound) as exc_info:
            exporter.export(FIGMA_URL)

        assert exc_info.value.status_code == 400
        assert len(session.calls) == 1

    def test_no_frames_exported(self, exporter, session):
        session.queue(FakeResponse(200, _two_frame_file()),
                      FakeResponse(200, images_payload({'f1': None, 'f2': None}, err="render timeout")))

        with pytest.raises(NoFramesExported):
            exporter.export(FIGMA_URL)


class TestExportImages:

    UNITS = [ExportableUnit('f1', 'Home'), ExportableUnit('f2', 'Login'), ExportableUnit('f3', 'Cart')]

    def test_batch_rate_limit_short_circuits(self, exporter, session, sleeper):
        session.queue(*[FakeResponse(429) for _ in range(4)])

        with pytest.raises(RateLimited):
            exporter.export_images('XYZ', self.UNITS)

        # Only the retried batch call; no per-frame fallback
        assert len(session.calls) == 4
        assert all(call['params']['ids'] == 'f1,f2,f3' for call in session.calls)
        assert 0.4 not in sleeper.waits

    def test_fallback_exports_one_by_one(self, exporter, session, sleeper):
        session.queue(
            FakeResponse(500),
            FakeResponse(200, images_payload({'f1': 'https://img/1'})),
            FakeResponse(400),
            FakeResponse(200, images_payload({'f3': 'https://img/3'})),
        )

        images = exporter.export_images('XYZ', self.UNITS)

        assert images == {'f1': 'https://img/1', 'f3': 'https://img/3'}
        assert [call['params']['ids'] for call in session.calls] == ['f1,f2,f3', 'f1', 'f2', 'f3']
        assert sleeper.waits == [0.4, 0.4, 0.4]

    def test_fallback_rate_limit_aborts(self, exporter, session):
        session.queue(
            FakeResponse(500),
            FakeResponse(200, images_payload({'f1': 'https://img/1'})),
            *[FakeResponse(429) for _ in range(4)]
        )

        with pytest.raises(RateLimited):
            exporter.export_images('XYZ', self.UNITS)

        assert 'f3' not in [call['params']['ids'] for call in session.calls]

    def test_fallback_skips_network_errors(self, exporter, session):
        session.queue(
            requests.Timeout("batch timed out"),
            requests.ConnectionError("reset"),
            FakeResponse(200, images_payload({'f2': 'https://img/2'})),
            FakeResponse(200, images_payload({'f3': None})),
        )

        images = exporter.export_images('XYZ', self.UNITS)

        assert images == {'f2': 'https://img/2'}

    def test_fallback_skips_undecodable_unit_bodies(self, exporter, session):
        session.queue(
            FakeResponse(500),
            FakeResponse(200, None, text="<html>oops</html>"),
            FakeResponse(200, images_payload({'f2': 'https://img/2'})),
            FakeResponse(200, {'images': ['f3']}),
        )

        images = exporter.export_images('XYZ', self.UNITS)

        assert images == {'f2': 'https://img/2'}
        assert [call['params']['ids'] for call in session.calls] == ['f1,f2,f3', 'f1', 'f2', 'f3']

    @pytest.mark.parametrize("payload", [{'images': ['f1']}, ['f1'], None])
    def test_invalid_batch_payload(self, exporter, session, payload):
        session.queue(FakeResponse(200, payload))

        with pytest.raises(UpstreamUnavailable) as exc_info:
            exporter.export_images('XYZ', self.UNITS)

        assert exc_info.value.message == "Figma API returned an invalid images payload"

    def test_null_urls_are_absent(self, exporter, session):
        session.queue(FakeResponse(200, images_payload({'f1': 'https://img/1', 'f2': None, 'f3': ''})))

        assert exporter.export_images('XYZ', self.UNITS) == {'f1': 'https://img/1'}

    def test_missing_images_key(self, exporter, session):
        session.queue(FakeResponse(200, {'err': None}))

        assert exporter.export_images('XYZ', self.UNITS) == {}

    def test_fallback_end_to_end_keeps_only_successful_frames(self, exporter, session, sleeper):
        session.queue(
            FakeResponse(200, _two_frame_file()),
            FakeResponse(500),
            FakeResponse(500),
            FakeResponse(200, images_payload({'f2': 'https://img/2'})),
        )

        result = exporter.export(FIGMA_URL)

        assert [frame.id for frame in result.frames] == ['f2']
        assert result.exported_units_count == 1
        assert result.total_units_found == 2
        assert sleeper.waits == [0.5, 0.4, 0.4]
