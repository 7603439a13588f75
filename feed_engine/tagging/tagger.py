"""Keyword-based tag inference for feed items."""

import copy
import threading
from typing import Dict, Iterable, List, Optional


class Tagger:
    """Infers category tags from keyword phrases found in an item's text.

    The rule table maps a tag to lowercase keyword phrases and is kept in
    insertion order. It can be changed at runtime; get_rules() returns a
    copy so callers cannot modify the live table.
    """

    DEFAULT_RULES: Dict[str, List[str]] = {
        "DJI": ["dji", "mavic", "phantom", "mini", "avata", "inspire", "matrice", "osmo"],
        "FPV": ["fpv", "goggles", "betaflight", "freestyle", "whoop", "cinewhoop", "quadcopter build"],
        "FAA": ["faa", "part 107", "remote id", "remote-id", "b4ufly", "laanc", "trust certificate"],
        "Racing": ["racing", "multigp", "drone racing league", "time trial"],
        "Tutorial": ["how to", "tutorial", "guide", "beginner", "step by step"],
        "Review": ["review", "hands-on", "tested", "comparison", "unboxing"],
        "Photography": ["photography", "photo", "camera", "aerial shot", "megapixel"],
        "Videography": ["video", "footage", "cinematic", "4k", "filming", "gimbal"],
        "Commercial": ["commercial", "enterprise", "business", "industry", "delivery"],
        "Agriculture": ["agriculture", "agricultural", "crop", "farming", "spraying"],
        "Mapping": ["mapping", "survey", "photogrammetry", "lidar", "waypoint"],
        "Autonomous": ["autonomous", "autopilot", "ardupilot", "px4", "inav", "obstacle avoidance"],
        "Regulation": ["regulation", "regulations", "easa", "legislation", "airspace", "no-fly zone"],
        "Hardware": ["motors", "flight controller", "propeller", "battery", "lipo", "4-in-1"],
        "Firmware": ["firmware", "elrs", "expresslrs", "crossfire", "edgetx", "opentx"],
        "Military": ["military", "defense", "defence", "ukraine", "warfare"],
    }

    def __init__(self, rules: Optional[Dict[str, Iterable[str]]] = None):
        source = self.DEFAULT_RULES if rules is None else rules
        self._lock = threading.RLock()
        self._rules: Dict[str, List[str]] = {
            tag: self._normalize_keywords(keywords) for tag, keywords in source.items()
        }

    @staticmethod
    def _normalize_keywords(keywords: Iterable[str]) -> List[str]:
        seen = []
        for kw in keywords:
            kw = kw.strip().lower()
            if kw and kw not in seen:
                seen.append(kw)
        return seen

    def infer_tags(self, title: str, content: str) -> List[str]:
        """Return the tags whose keywords appear in title or content.

        Each tag appears at most once, in rule table order.
        """
        title = (title or "").lower()
        content = (content or "").lower()
        if not title and not content:
            return []

        with self._lock:
            rules = list(self._rules.items())

        tags = []
        for tag, keywords in rules:
            if any(kw in title or kw in content for kw in keywords):
                tags.append(tag)
        return tags

    def add_rule(self, tag: str, keywords: Iterable[str]) -> None:
        """Add or replace the keywords for a tag."""
        normalized = self._normalize_keywords(keywords)
        with self._lock:
            self._rules[tag] = normalized

    def remove_rule(self, tag: str) -> None:
        with self._lock:
            self._rules.pop(tag, None)

    def get_rules(self) -> Dict[str, List[str]]:
        with self._lock:
            return copy.deepcopy(self._rules)
