#!/usr/bin/env python3
"""
手动走一遍 intake wizard API 的示例脚本

使用方法:
1. 确保 clinic 服务端可访问（CLINIC_API_BASE_URL），并且有一个表单模板
2. 确保Django服务器正在运行: python backend/manage.py runserver
3. 运行此脚本: python smoke_intake_api.py <template_id>
"""

import json
import sys

import requests

# API配置
BASE_URL = "http://localhost:8000/api"


def show(title, response):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)
    print(f"响应状态码: {response.status_code}")
    data = response.json()
    if "type" in data:
        print(f"❌ {data['code']}: {data['message']}")
        if data.get("detail"):
            print(f"详情: {json.dumps(data['detail'], ensure_ascii=False)}")
    return data


def describe_step(data):
    item = data.get("current_item")
    if item is None:
        print("（模板没有题目）")
        return
    print(f"步骤 {data['current_index'] + 1}/{data['total']}  语言: {data['language']}")
    print(f"  - 题目ID: {item['id']}")
    print(f"  - 类型: {item['variant']}")
    print(f"  - 题干: {item['question_text']}")
    print(f"  - 必填: {item['is_required']}")
    print(f"  - 已填: {json.dumps(data['answers'], ensure_ascii=False)}")


def run(template_id):
    response = requests.post(f"{BASE_URL}/intake/sessions/", json={"template_id": template_id})
    data = show("创建 intake session", response)
    if response.status_code != 201:
        return
    session_id = data["session_id"]
    describe_step(data)

    doctors = show("医生列表", requests.get(f"{BASE_URL}/intake/doctors/"))
    for doctor in doctors.get("doctors", []):
        print(f"  - {doctor['id']}: {doctor['display_name']}")

    # 不填任何答案直接 Next：必填题应该被拦下
    data = show("直接 Next", requests.post(f"{BASE_URL}/intake/sessions/{session_id}/next/"))
    if "type" not in data:
        describe_step(data)

    data = show("返回上一步", requests.post(f"{BASE_URL}/intake/sessions/{session_id}/previous/"))
    describe_step(data)

    data = show(
        "切换到 alternate 语言",
        requests.post(f"{BASE_URL}/intake/sessions/{session_id}/language/", json={"language": "alternate"}),
    )
    describe_step(data)

    show("在第一步提交（应该 409）", requests.post(f"{BASE_URL}/intake/sessions/{session_id}/submit/"))


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("用法: python smoke_intake_api.py <template_id>")
        sys.exit(1)
    run(sys.argv[1])
