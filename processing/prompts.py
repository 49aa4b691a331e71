"""Instruction prompt shared by the frame classifier and the analysis proxy.

The JSON skeleton in the prompt is the response schema parsed by
``processing.frame_classifier.parse_frame_analysis``; change both together.
"""

FRAME_ANALYSIS_PROMPT = """请严格按以下JSON格式分析这张图片：
{
  "has_clear_face": false,
  "face_confidence": 0.0,
  "face_description": "",
  "has_subtitle": false,
  "subtitle_confidence": 0.0,
  "subtitle_text": ""
}
检测标准：
1. 人脸检测：检测画面中是否包含清晰的正面脸或侧脸
   - ✅ 清晰的正面或侧脸
   - ❌ 远景模糊脸、人群中模糊脸、背影
   - 置信度：0.0-1.0
2. 字幕检测：检测画面中任何位置的文字
   - ✅ 中文、英文、标题、水印
   - ❌ 建筑招牌、商店名称、海报文字、墙上的字、产品包装以及无文字画面
请只返回JSON，不要任何其他文字。"""

# Appended to the prompt by the proxy, followed by the frame index
FRAME_INDEX_LABEL = "当前帧序号："


def build_frame_prompt(index: int) -> str:
    """Prompt text for one frame, tagged with its sample index."""
    return f"{FRAME_ANALYSIS_PROMPT}\n{FRAME_INDEX_LABEL}{index}"
