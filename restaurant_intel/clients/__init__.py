"""Client singletons for external API interactions."""
from restaurant_intel.clients.kakao_client import KakaoClient
from restaurant_intel.clients.naver_client import NaverClient
from restaurant_intel.clients.food_safety_client import FoodSafetyClient

__all__ = ["KakaoClient", "NaverClient", "FoodSafetyClient"]
