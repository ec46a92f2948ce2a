from conftest import FakeFrame, FakeTab
from core.models import DetailSelectors
from plugins.incidents.detail_scraper import scrape_detail

STREAM = """
<ul id="sn_form_inline_stream_entries">
  <li class="h-card">
    <div class="sn-card-component-time"><span>Work notes</span>
      <span class="date-calendar">2025-01-02 10:00:00</span></div>
    <span class="sn-card-component-createdby">Integration User</span>
    <div class="sn-widget-textblock-body">Request failed:
       "payload":"{\\"ApplicationId\\":\\"123456\\"}"</div>
  </li>
  <li class="h-card">
    <div class="sn-card-component-time"><span>Field changes</span></div>
    <ul class="sn-widget-list-table">
      <li><span class="sn-widget-list-table-cell">State</span>
          <span class="sn-widget-list-table-cell">In Progress</span></li>
      <li><span class="sn-widget-list-table-cell"> </span>
          <span class="sn-widget-list-table-cell"></span></li>
    </ul>
    <div class="sn-card-component_attachment">
      <a class="stream-action" href="/sys_attachment.do?sys_id=9" file-name="receipt.pdf" size="12 KB">x</a>
    </div>
  </li>
</ul>
"""


async def test_detail_from_top_frame():
    tab = FakeTab(FakeFrame(STREAM, url="https://esm.gov.ae/incident.do?sys_id=1"))

    outcome = await scrape_detail(tab, poll_interval=0.01, wait_timeout=0.05)

    assert outcome.ok and outcome.error is None
    first, second = outcome.detail.activity
    assert first.type == "Work notes"
    assert first.time == "2025-01-02 10:00:00"
    assert first.by == "Integration User"
    assert first.text.startswith("Request failed:")
    assert first.attachment is None
    assert second.type == "Field changes"
    assert [(r.key, r.value) for r in second.records] == [("State", "In Progress")]
    assert second.attachment.href == "https://esm.gov.ae/sys_attachment.do?sys_id=9"
    assert second.attachment.file_name == "receipt.pdf"
    assert second.attachment.size == "12 KB"


async def test_detail_inside_gsft_main_child_frame():
    child = FakeFrame(STREAM, url="https://esm.gov.ae/incident.do", name="gsft_main")
    tab = FakeTab(FakeFrame("<iframe id='gsft_main'></iframe>", children=[child]))

    outcome = await scrape_detail(tab, poll_interval=0.01, wait_timeout=0.05)

    assert outcome.ok
    assert len(outcome.detail.activity) == 2


async def test_detail_found_in_other_frame_on_second_pass():
    other = FakeFrame(STREAM, url="https://cdn.example/frame")
    tab = FakeTab(FakeFrame("<div></div>"), extra_frames=[other])

    outcome = await scrape_detail(tab, poll_interval=0.01, wait_timeout=0.02)

    assert outcome.ok


async def test_container_override():
    html = STREAM.replace('id="sn_form_inline_stream_entries"', 'class="custom-stream"')
    tab = FakeTab(FakeFrame(html))

    outcome = await scrape_detail(
        tab, DetailSelectors(main_container=".custom-stream"), poll_interval=0.01, wait_timeout=0.05
    )

    assert outcome.ok


async def test_missing_container_reports_first_frame_error():
    tab = FakeTab(FakeFrame("<div></div>"))

    outcome = await scrape_detail(tab, poll_interval=0.01, wait_timeout=0.02)

    assert not outcome.ok
    assert outcome.detail is None
    assert outcome.error == "Detail container not found"


async def test_unreadable_frames_give_not_found_in_frames():
    tab = FakeTab(FakeFrame(fail=True))

    outcome = await scrape_detail(tab, poll_interval=0.01, wait_timeout=0.02)

    assert outcome.error == "Detail not found in frames"
