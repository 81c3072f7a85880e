"""
OpenVPN Access Server Docker
벤더 컨테이너 이미지로 OpenVPN Access Server 를 배포/운영하는 도구

Features:
- 초기 설치 (디렉토리, .env 템플릿, 이미지 pull, 컨테이너 시작)
- 설정/데이터 백업 및 복원 (tar.gz 압축, 보관 기간 정리)
- sacli 기반 사용자 관리 및 관리자 비밀번호 재설정
- 상태 조회, 로그, 업데이트, 헬스체크
"""

__version__ = "1.0.0"
__author__ = "DevOps Team"
