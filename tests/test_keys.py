from core.models import ActivityEntry, ActivityRecord, Detail
from plugins.incidents.keys import extract_keys, parse_payloads


def _detail(*texts: str, records=()) -> Detail:
    entries = [ActivityEntry(text=t) for t in texts]
    if records:
        entries.append(ActivityEntry(records=[ActivityRecord(key=k, value=v) for k, v in records]))
    return Detail(activity=entries)


def test_refkey_wins_over_presale_no():
    detail = _detail('presaleNo: "67890" and later RefKey: "12345"')

    assert extract_keys(detail).presale_no == "12345"


def test_seller_chassis_no_wins_over_chassis_no():
    detail = _detail('chassisNo: "AAA111" sellerChassisNo: "BBB222"')

    assert extract_keys(detail).chassis_no == "BBB222"


def test_keys_from_escaped_json_text():
    detail = _detail('{\\"ApplicationId\\":\\"987654\\",\\"EmiratesId\\":\\"784199012345671\\"}')

    keys = extract_keys(detail)

    assert keys.application_id == "987654"
    assert keys.emirates_id == "784199012345671"


def test_keys_from_records():
    detail = _detail(records=[("applicationId", "= 445566"), ("Comment", "n/a")])

    assert extract_keys(detail).application_id == "445566"


def test_payload_fallback_uses_first_payload_defining_the_field():
    text = (
        'log "payload":"{\\"preAppSerialNo\\":\\"111\\",\\"ChassisNo\\":\\"XYZ9\\"}" '
        'retry "payload":"{\\"preAppSerialNo\\":\\"222\\",\\"EmiratesID\\":\\"55555\\"}"'
    )
    payloads = parse_payloads(text)

    assert [p["preAppSerialNo"] for p in payloads] == ["111", "222"]
    keys = extract_keys(_detail(text))
    assert keys.presale_no == "111"
    assert keys.emirates_id == "55555"
    assert keys.chassis_no == "XYZ9"


def test_unparsable_payload_is_ignored():
    assert parse_payloads('"payload":"{not json}"') == []


def test_extraction_is_idempotent():
    detail = _detail('ApplicationId: "20001" RefKey=3333 sellerChassisNo: "CH1"')

    assert extract_keys(detail) == extract_keys(detail)
    assert extract_keys(detail).has_any()


def test_no_keys():
    keys = extract_keys(_detail("Customer called about a refund"))

    assert not keys.has_any()
    assert extract_keys(None) == extract_keys(Detail())
