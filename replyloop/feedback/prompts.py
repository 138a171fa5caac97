"""Prompt templates for the knowledge loop (extraction, organization, structure review)."""

from dataclasses import dataclass

_CATEGORY_GUIDE = """1. 產品信息：功能、價格、規格、限制
2. 常見問題：客戶反覆詢問的問題及解答
3. 流程說明：操作步驟、例外情況的處理方式
4. 政策信息：保固、退款、隱私、使用條款
5. 故障排除：診斷步驟、解決方案、需要專人支援的情況"""

_ITEM_FIELDS = """請只輸出一個 JSON 數組，每個知識點包含以下欄位：
- title: 知識點標題（簡短、明確）
- content: 知識點內容（完整，包含必要的上下文）
- category: 分類（產品信息、常見問題、流程說明、政策信息、故障排除）
- tags: 標籤數組（3-5 個關鍵詞）
- source: 知識來源
- confidence: 信心分數（0 到 1 之間的小數）
  - 0.9-1.0：非常確定
  - 0.7-0.9：較為確定
  - 0.5-0.7：中等確定，有推論成分"""


@dataclass
class KnowledgePrompts:
    """Prompts for mining and organizing knowledge."""

    FROM_CONVERSATION = (
        """你是一個專業的知識提取助手，負責從客服對話中提取可重複使用的知識。

可提取的知識類型：
"""
        + _CATEGORY_GUIDE
        + """

只提取明確、準確、有實用價值的知識，不要猜測或過度推論。

對話內容：
{transcript}

"""
        + _ITEM_FIELDS
        + """
- source 請填「客服對話」

如果對話中沒有有價值的知識點，請輸出空數組 []。

JSON 輸出："""
    )

    FROM_CORRECTION = (
        """你是一個專業的知識提取助手。客服人員修改了 AI 產生的回覆，請找出客服「新增或修正」的知識。

可提取的知識類型：
"""
        + _CATEGORY_GUIDE
        + """

提取標準：
- 只提取客服明確新增或修改的內容
- 只是語氣、語法或格式的改寫不算新知識
- 關注顯示 AI 缺乏知識或理解錯誤的修改

客戶訊息與上下文：
{context}

AI 原始回覆：
{original}

客服修改後的回覆：
{corrected}

"""
        + _ITEM_FIELDS
        + """
- source 請填「客服修改」

如果修改中沒有有價值的知識點，請輸出空數組 []。

JSON 輸出："""
    )

    ORGANIZE = """你是一個專業的知識組織助手，負責為知識庫中的知識分類、加上標籤並建立關聯。

知識項目：
ID: {item_id}
標題: {title}
內容: {content}
目前分類: {category}
目前標籤: {tags}

現有分類：
{existing_categories}

現有標籤：
{existing_tags}

相關知識項目：
{neighbors}

請提供：
1. 1-3 個分類建議，優先使用現有分類
2. 3-5 個標籤建議，優先使用現有標籤
3. 與上列相關知識項目的關聯，target_id 必須是上列的 ID

請只輸出一個 JSON 物件，包含：
- suggested_categories: 數組，每項包含 name、description、parent_category（可為 null）、confidence（0-1）
- suggested_tags: 數組，每項包含 name、description、confidence（0-1）
- suggested_relations: 數組，每項包含 target_id、relation_type（related、parent、child、similar、contradicts 之一）、strength（0-1）、reason

JSON 輸出："""

    STRUCTURE_REVIEW = """你是一個專業的知識組織助手，負責分析知識庫結構並提出優化建議。

知識項目總數：{total_items}

分類分佈：
{category_distribution}

所有標籤：
{all_tags}

請提出：
1. 建議新增的分類（2-3 個）
2. 建議合併的分類
3. 建議新增的標籤（3-5 個）
4. 建議合併的標籤

請只輸出一個 JSON 物件，包含：
- suggested_new_categories: 數組，每項包含 name、description
- suggested_category_merges: 數組，每項包含 categories（數組）、new_category、reason
- suggested_new_tags: 數組，每項包含 name、description
- suggested_tag_merges: 數組，每項包含 tags（數組）、new_tag、reason

JSON 輸出："""
