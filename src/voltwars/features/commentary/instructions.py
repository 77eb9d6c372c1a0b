"""Static trilingual instructions keyed by phase and the acting team's name."""

from __future__ import annotations

from typing import Final

from ...core.models import LocalizedText
from ...engine.phases import Phase

__all__ = ["DEFAULT_INSTRUCTION", "phase_instruction"]

DEFAULT_INSTRUCTION: Final = LocalizedText(zh="請繼續。", en="Please proceed.", ja="続けてください。")

# ``{name}`` is filled with the acting team's name.
_TEMPLATES: Final[dict[Phase, tuple[str, str, str]]] = {
    Phase.SETUP: (
        "歡迎來到電壓戰爭！請輸入隊伍名稱以開始遊戲。",
        "Welcome to Voltage Wars! Please enter team names to start.",
        "Voltage Warsへようこそ！チーム名を入力して開始してください。",
    ),
    Phase.A_DRAW: (
        "{name}，請點擊按鈕抽取您的 6 個半電池組件。",
        "{name}, please click to draw your 6 half-cell components.",
        "{name}、ボタンをクリックして6つの半電池コンポーネントを引いてください。",
    ),
    Phase.B_DRAW: (
        "{name}，現在輪到你抽取組件了。",
        "{name}, it is your turn to draw components.",
        "{name}、コンポーネントを引く番です。",
    ),
    Phase.A_ASSEMBLE: (
        "{name}，請將組件拖入電池槽中以組裝兩個電池。",
        "{name}, drag components into slots to assemble two cells.",
        "{name}、コンポーネントをスロットにドラッグして2つの電池を組み立ててください。",
    ),
    Phase.B_ASSEMBLE: (
        "{name}，請進行電池組裝。選擇電位差最大的組合！",
        "{name}, assemble your cells. Aim for the highest potential difference!",
        "{name}、電池を組み立ててください。最大の電位差を目指しましょう！",
    ),
    Phase.A_WIRING: (
        "{name}，請連接電線。記得：紅線接高電位(正極)，黑線接低電位(負極)。",
        "{name}, connect the wires. Remember: Red to High Potential (+), Black to Low (-).",
        "{name}、配線を接続してください。赤は高電位（+）、黒は低電位（-）に接続します。",
    ),
    Phase.B_WIRING: (
        "{name}，請完成接線。串聯可以增加總電壓。",
        "{name}, complete your wiring. Series connection increases total voltage.",
        "{name}、配線を完了してください。直列接続は総電圧を増加させます。",
    ),
    Phase.JOINT_DRAW_ANIMATION: (
        "雙方請抽取 3 張功能卡。第一張強制攻擊，第二張強制強化，第三張自由選擇。",
        "Both teams draw 3 Action Cards. Card 1: Attack, Card 2: Buff, Card 3: Flexible.",
        "両チームがアクションカードを3枚引きます。1枚目は攻撃、2枚目は強化、3枚目は自由です。",
    ),
    Phase.B_ACTION_1: (
        "【第一張牌：強制攻擊】{name}，必須對對手使用此卡。",
        "[Card 1: Mandatory Attack] {name}, you MUST use this card on the opponent.",
        "【1枚目：強制攻撃】{name}、このカードを対戦相手に使用しなければなりません。",
    ),
    Phase.A_ACTION_1: (
        "【第一張牌：強制攻擊】{name}，你現在必須攻擊對手。",
        "[Card 1: Mandatory Attack] {name}, you must now ATTACK the opponent.",
        "【1枚目：強制攻撃】{name}、対戦相手を攻撃しなければなりません。",
    ),
    Phase.B_ACTION_2: (
        "【第二張牌：自我強化】{name}，必須對自己使用此卡。",
        "[Card 2: Mandatory Buff] {name}, you MUST use this card on YOURSELF.",
        "【2枚目：自己強化】{name}、このカードを自分自身に使用しなければなりません。",
    ),
    Phase.A_ACTION_2: (
        "【第二張牌：自我強化】{name}，必須對自己使用此卡。",
        "[Card 2: Mandatory Buff] {name}, you MUST use this card on YOURSELF.",
        "【2枚目：自己強化】{name}、このカードを自分自身に使用しなければなりません。",
    ),
    Phase.B_ACTION_3: (
        "【第三張牌：自由選擇】{name}，攻擊對手、強化自己或跳過。",
        "[Card 3: Flexible] {name}, Target Opponent, Self, or Skip.",
        "【3枚目：自由選択】{name}、対戦相手を攻撃、自分を強化、またはスキップできます。",
    ),
    Phase.A_ACTION_3: (
        "【第三張牌：自由選擇】{name}，這是最後的機會。攻擊、強化或跳過。",
        "[Card 3: Flexible] {name}, final chance. Attack, Buff, or Skip.",
        "【3枚目：自由選択】{name}、最後のチャンスです。攻撃、強化、またはスキップしてください。",
    ),
    Phase.ROUND_SUMMARY: (
        "本回合結束。請查看比分並準備下一回合。",
        "Round Over. Check scores and prepare for the next round.",
        "ラウンド終了。スコアを確認し、次のラウンドの準備をしてください。",
    ),
    Phase.GAME_OVER: (
        "比賽結束！三戰兩勝制的冠軍已經誕生！",
        "Game Over! The Best of 3 Champion has been crowned!",
        "ゲームオーバー！3戦2勝制のチャンピオンが決定しました！",
    ),
}


def phase_instruction(phase: Phase | str, team_name: str | None = None) -> LocalizedText:
    try:
        zh, en, ja = _TEMPLATES[Phase(phase)]
    except (KeyError, ValueError):
        return DEFAULT_INSTRUCTION
    name = (team_name or "").strip() or "Player"
    return LocalizedText(zh=zh.format(name=name), en=en.format(name=name), ja=ja.format(name=name))
