"""Default 15-slice catalog installed by ``flask wheel seed-campaign``.

Costs are in cents. The order here is the order rendered on the wheel, so
changing it changes every slice's position.
"""

from wheel_be.models import WheelSlice

DEFAULT_SEGMENTS = [
    {'type': 'cash',      'label': '$1',           'prize_value': '$1',  'color': '#10B981', 'cost': 100},
    {'type': 'cash',      'label': '$5',           'prize_value': '$5',  'color': '#3B82F6', 'cost': 500},
    {'type': 'free_spin', 'label': 'Free Spin +1', 'prize_value': None,  'color': '#F59E0B', 'cost': 0},
    {'type': 'cash',      'label': '$1',           'prize_value': '$1',  'color': '#10B981', 'cost': 100},
    {'type': 'lose',      'label': 'Better Luck',  'prize_value': None,  'color': '#6B7280', 'cost': 0},
    {'type': 'cash',      'label': '$10',          'prize_value': '$10', 'color': '#8B5CF6', 'cost': 1000},
    {'type': 'lose',      'label': 'Better Luck',  'prize_value': None,  'color': '#6B7280', 'cost': 0},
    {'type': 'cash',      'label': '$5',           'prize_value': '$5',  'color': '#3B82F6', 'cost': 500},
    {'type': 'cash',      'label': '$1',           'prize_value': '$1',  'color': '#10B981', 'cost': 100},
    {'type': 'free_spin', 'label': 'Free Spin +1', 'prize_value': None,  'color': '#F59E0B', 'cost': 0},
    {'type': 'discount',  'label': '50%',          'prize_value': '50%', 'color': '#EC4899', 'cost': 0},
    {'type': 'lose',      'label': 'Better Luck',  'prize_value': None,  'color': '#6B7280', 'cost': 0},
    {'type': 'cash',      'label': '$1',           'prize_value': '$1',  'color': '#10B981', 'cost': 100},
    {'type': 'cash',      'label': '$5',           'prize_value': '$5',  'color': '#3B82F6', 'cost': 500},
    {'type': 'lose',      'label': 'Better Luck',  'prize_value': None,  'color': '#6B7280', 'cost': 0},
]


def build_slices(campaign_id, segments=None):
    """Return unsaved WheelSlice rows for ``segments`` (defaults to DEFAULT_SEGMENTS)."""
    segments = DEFAULT_SEGMENTS if segments is None else segments
    return [
        WheelSlice(
            campaign_id=campaign_id,
            position=index,
            type=segment['type'],
            label=segment['label'],
            prize_value=segment.get('prize_value'),
            cost=segment['cost'],
            color=segment.get('color'),
            enabled=segment.get('enabled', True),
            max_wins=segment.get('max_wins'),
        )
        for index, segment in enumerate(segments)
    ]
