"""
业务配置接口 - 支持可替换的业务配置

新项目可以实现自己的业务配置，替换默认配置。
报表、Slack 命令解析等模块只通过此接口读取业务词汇（分类标签、状态标签、
文档编号前缀、命令关键词），不直接硬编码。
"""
from abc import ABC, abstractmethod
from typing import Dict, List


class BusinessConfig(ABC):
    """业务配置抽象基类"""

    @abstractmethod
    def get_expense_category_labels(self) -> Dict[str, str]:
        """获取支出分类 → 显示名称"""
        pass

    @abstractmethod
    def get_revenue_category_labels(self) -> Dict[str, str]:
        """获取收入分类 → 显示名称"""
        pass

    @abstractmethod
    def get_status_labels(self) -> Dict[str, str]:
        """获取状态 → 显示名称"""
        pass

    @abstractmethod
    def get_document_prefixes(self) -> Dict[str, str]:
        """获取文档类型 → 编号前缀"""
        pass

    @abstractmethod
    def get_command_keywords(self) -> Dict[str, List[str]]:
        """获取命令意图 → 关键词列表"""
        pass

    def get_help_text(self) -> str:
        """无法识别命令时的帮助文本"""
        return ""


class AgencyConfig(BusinessConfig):
    """营销代理公司（网红合作）业务配置"""

    def get_expense_category_labels(self) -> Dict[str, str]:
        return {
            "FOOD": "식비",
            "TRANSPORTATION": "교통비",
            "SUPPLIES": "사무용품",
            "AD_EXPENSE": "광고비",
            "AD_SPEND": "광고비",
            "INFLUENCER_FEE": "인플루언서",
            "CONTENT_PRODUCTION": "콘텐츠 제작",
            "OPERATIONS": "운영비",
            "SALARY": "급여",
            "OFFICE_RENT": "임대료",
            "OTHER_EXPENSE": "기타",
        }

    def get_revenue_category_labels(self) -> Dict[str, str]:
        return {
            "FIXED_MANAGEMENT": "고정 관리비",
            "PROJECT_MANAGEMENT": "프로젝트 관리",
            "AD_REVENUE": "광고 수익",
            "PLATFORM_REVENUE": "플랫폼 수익",
            "CAMPAIGN_FEE": "캠페인 대행",
            "CONTENT_FEE": "콘텐츠 제작비",
            "CONSULTING": "컨설팅",
            "OTHER_REVENUE": "기타",
        }

    def get_status_labels(self) -> Dict[str, str]:
        return {
            "ACTIVE": "활성",
            "DORMANT": "휴면",
            "TERMINATED": "종료",
            "QUOTING": "견적중",
            "IN_PROGRESS": "진행중",
            "COMPLETED": "완료",
            "CANCELLED": "취소",
            "pending": "대기",
            "in_progress": "요청됨",
            "completed": "완료",
        }

    def get_document_prefixes(self) -> Dict[str, str]:
        return {
            "QUOTE": "EST",
            "TAX_INVOICE": "TAX",
            "CONTRACT": "CON",
        }

    def get_command_keywords(self) -> Dict[str, List[str]]:
        # 顺序即匹配优先级
        return {
            "generate_report": ["리포트", "보고서", "report"],
            "query_schedule": ["일정", "스케줄", "미팅", "schedule"],
            "query_settlement": ["정산", "settlement"],
            "query_spending": ["지출", "비용", "spending"],
            "query_dashboard": ["현황", "요약", "통계", "dashboard"],
        }

    def get_help_text(self) -> str:
        return (
            "요청을 이해하지 못했습니다. 다음과 같이 입력해보세요:\n"
            "- 현황: \"이번 달 현황\"\n"
            "- 정산: \"정산 대기 목록\"\n"
            "- 지출: \"이번달 지출 분석\" / \"지난달 지출\"\n"
            "- 일정: \"이번주 일정\" / \"다음주 미팅\"\n"
            "- 리포트: \"주간 리포트 보내줘\" / \"월간 리포트\""
        )


# 全局业务配置实例（可以在 app.py 中替换）
business_config: BusinessConfig = AgencyConfig()
