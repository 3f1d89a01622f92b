"""English/Arabic UI strings"""

TRANSLATIONS = {
    "en": {
        "app_name": "Qiyas",
        "tagline": "Frameworks • Controls • Assessment Criteria",
        "login": "Sign In",
        "logout": "Logout",
        "organizations": "Organizations",
        "projects": "Projects",
        "frameworks": "Frameworks",
        "domains": "Domains",
        "controls": "Controls",
        "specifications": "Specifications",
        "users": "Users",
        "status_open": "Open",
        "status_closed": "Closed",
        "status_on-holding": "On Hold",
        "capability_levels": {
            "foundational": "Foundational",
            "advanced": "Advanced",
            "veryAdvanced": "Very Advanced",
        },
        "dimensions": {
            "plan": "Plan",
            "implement": "Implement",
            "operate": "Operate",
        },
        "criteria_types": {
            "percentage": "Percentage",
            "maturity": "Maturity Levels",
            "compliance": "Compliance Levels",
        },
        "wizard_steps": {
            "type": "Select Criteria Type",
            "levels": "Configure Levels",
            "domains": "Assign Domain Weights",
            "preview": "Review & Save",
        },
        "errors": {
            "noLevels": "Add at least one level before continuing.",
            "levelOrder": "Maturity level values must be in increasing order.",
            "levelRange": "Level values must be between 0 and 100.",
            "levelIncomplete": "Fill in the label and description in both languages.",
            "weightSum": "Domain weights must add up to 100% (currently {sum}%).",
            "saveFailed": "Failed to save the assessment criteria. Please try again.",
            "deleteFailed": "Failed to delete the assessment criteria. Please try again.",
            "unauthorized": "Unauthorized - No session cookie",
            "invalidSession": "Unauthorized - Invalid session",
            "forbidden": "Forbidden - Insufficient permissions",
            "notFound": "Not found",
        },
    },
    "ar": {
        "app_name": "قياس",
        "tagline": "الأطر • الضوابط • معايير التقييم",
        "login": "تسجيل الدخول",
        "logout": "تسجيل الخروج",
        "organizations": "المنظمات",
        "projects": "المشاريع",
        "frameworks": "الأطر",
        "domains": "المجالات",
        "controls": "الضوابط",
        "specifications": "المواصفات",
        "users": "المستخدمون",
        "status_open": "مفتوح",
        "status_closed": "مغلق",
        "status_on-holding": "معلق",
        "capability_levels": {
            "foundational": "اساسيه",
            "advanced": "متقدمه",
            "veryAdvanced": "متقدمه جدا",
        },
        "dimensions": {
            "plan": "التخطيط",
            "implement": "التنفيذ",
            "operate": "التشغيل",
        },
        "criteria_types": {
            "percentage": "نسبة مئوية",
            "maturity": "مستويات النضج",
            "compliance": "مستويات الامتثال",
        },
        "wizard_steps": {
            "type": "اختر نوع المعايير",
            "levels": "إعداد المستويات",
            "domains": "توزيع أوزان المجالات",
            "preview": "المراجعة والحفظ",
        },
        "errors": {
            "noLevels": "أضف مستوى واحداً على الأقل قبل المتابعة.",
            "levelOrder": "يجب أن تكون قيم مستويات النضج تصاعدية.",
            "levelRange": "يجب أن تكون قيم المستويات بين 0 و 100.",
            "levelIncomplete": "أدخل الاسم والوصف باللغتين.",
            "weightSum": "يجب أن يكون مجموع أوزان المجالات 100% (حالياً {sum}%).",
            "saveFailed": "تعذر حفظ معايير التقييم. يرجى المحاولة مرة أخرى.",
            "deleteFailed": "تعذر حذف معايير التقييم. يرجى المحاولة مرة أخرى.",
            "unauthorized": "غير مصرح - لا توجد جلسة",
            "invalidSession": "غير مصرح - الجلسة غير صالحة",
            "forbidden": "ممنوع - صلاحيات غير كافية",
            "notFound": "غير موجود",
        },
    },
}


def get_text(lang='en'):
    """Get translations for language."""
    return TRANSLATIONS.get(lang, TRANSLATIONS['en'])
