"""
Threshold evaluation functions for GeoShade.

This module contains pure functions that derive a display color for
each polygon from its current value and an ordered rule set.
"""

import operator
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence
from geoshade.core.models import DEFAULT_COLOR, Polygon, ThresholdRule


class RuleMatch(str, Enum):
    """규칙 선택 방식"""
    FIRST = "first"   # 배열 순서상 처음 일치한 규칙
    LAST = "last"     # 뒤에 오는 일치 규칙이 앞의 규칙을 덮어씀


# 연산자 → 비교 함수
OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    "=": operator.eq,
    ">=": operator.ge,
    ">": operator.gt,
}


def rule_matches(rule: ThresholdRule, value: float, tolerance: float = 0.0) -> bool:
    """
    규칙의 (연산자, 값) 조건이 value 에 대해 성립하는지 확인합니다.

    '=' 는 기본적으로 정확히 같은지 비교합니다. 평균값은 보통 부동소수라
    거의 일치하지 않으므로 필요하면 tolerance 를 지정합니다.
    """
    if rule.operator == "=" and tolerance > 0:
        return abs(value - rule.value) <= tolerance
    return OPERATORS[rule.operator](value, rule.value)


def match_rule(value: float,
               rules: Sequence[ThresholdRule],
               *,
               tolerance: float = 0.0,
               match: RuleMatch = RuleMatch.FIRST) -> Optional[ThresholdRule]:
    """
    value 에 적용할 규칙을 찾습니다.

    Args:
        value: 폴리곤 값
        rules: 순서가 의미 있는 규칙 목록
        tolerance: '=' 연산자 허용 오차
        match: FIRST 또는 LAST

    Returns:
        선택된 규칙 또는 None
    """
    ordered = rules if RuleMatch(match) is RuleMatch.FIRST else reversed(rules)
    for rule in ordered:
        if rule_matches(rule, value, tolerance):
            return rule
    return None


def evaluate(polygons: Sequence[Polygon],
             rules: Sequence[ThresholdRule],
             *,
             default_color: str = DEFAULT_COLOR,
             tolerance: float = 0.0,
             match: RuleMatch = RuleMatch.FIRST) -> List[Polygon]:
    """
    폴리곤마다 표시 색상을 결정합니다.

    값이 없는 폴리곤은 기존 색상을 그대로 유지합니다 (샘플링이 끝나기 전에
    기본 색으로 깜빡이지 않도록). 입력은 변경하지 않으며 같은 입력에는
    항상 같은 결과를 돌려줍니다.

    Args:
        polygons: 폴리곤 스냅샷
        rules: 임계값 규칙 목록
        default_color: 일치하는 규칙이 없을 때의 색상
        tolerance: '=' 연산자 허용 오차
        match: 규칙 선택 방식

    Returns:
        색상이 갱신된 폴리곤 목록 (입력과 같은 순서)
    """
    result: List[Polygon] = []
    for polygon in polygons:
        if polygon.value is None:
            result.append(polygon)
            continue

        rule = match_rule(polygon.value, rules, tolerance=tolerance, match=match)
        color = rule.color if rule is not None else default_color

        if color == polygon.color:
            result.append(polygon)
        else:
            result.append(polygon.model_copy(update={"color": color}))
    return result
