"""
Sequential document numbers (PO-0001, ST-0001, ADJ-0001, INV-2410-0001).
"""
import re


def next_number(model, field: str, prefix: str, width: int = 4) -> str:
    """
    Return the next number in the ``<prefix><sequence>`` series for ``model.field``.

    The sequence is read from the highest existing value with the same prefix,
    so callers should still rely on the field's unique constraint.
    """
    pattern = re.compile(rf'^{re.escape(prefix)}(\d+)$')
    last_sequence = 0
    values = (
        model.objects.filter(**{f'{field}__startswith': prefix})
        .values_list(field, flat=True)
    )
    for value in values:
        match = pattern.match(value)
        if match:
            last_sequence = max(last_sequence, int(match.group(1)))
    return f"{prefix}{last_sequence + 1:0{width}d}"
