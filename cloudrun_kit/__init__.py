"""
cloudrun_kit
------------

Cloud Run 배포/운영용 대화형 CLI 패키지.
gcloud / docker 호출을 하나의 실행 shim 으로 모아 dry-run 을 지원하고,
프롬프트로 수집한 설정을 `gcloud run deploy` 명령으로 합성한다.
"""

__all__ = [
    "config",
    "orchestrator",
]

__version__ = "0.3.0"
