"""
Bot texts and keyboards (render instructions for the messenger transport).
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from src.core.constants import Category, Region
from src.models.help_request import HelpRequest
from src.models.response import Response
from src.models.schemas import Button, OutgoingMessage
from src.services.phone_validator import PhoneValidator

MOSCOW_TZ = timezone(timedelta(hours=3))
NO_ADDRESS = "Не указан"

HELP = "help"
NEED = "need"

Row = Sequence[Tuple[str, str]]


def keyboard(*rows: Row) -> List[List[Button]]:
    return [[Button(label=label, payload=payload) for label, payload in row] for row in rows if row]


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(MOSCOW_TZ).strftime("%d.%m.%Y, %H:%M:%S")


def category_label(value) -> str:
    category = Category.parse(value)
    return category.label if category else str(value)


def region_label(value) -> str:
    region = Region.parse(value)
    return region.label if region else str(value)


def action_title(action: str) -> str:
    return "Хочу помочь" if action == HELP else "Нужна помощь"


def _nav_row(prefix: str, index: int, total: int, suffix: str = "") -> List[Tuple[str, str]]:
    row = []
    if index > 0:
        row.append(("Назад", f"{prefix}prev_{index - 1}{suffix}"))
    if index < total - 1:
        row.append(("Далее", f"{prefix}next_{index + 1}{suffix}"))
    return row


BACK_TO_MENU = ("В главное меню", "back_to_start")
BACK_TO_PROFILE = ("Назад в профиль", "back_to_profile")


class BotMessages:
    """Standard texts of the volunteer bot"""

    # =========================================================================
    # AGREEMENT AND MENUS
    # =========================================================================

    @staticmethod
    def agreement(display_name: str) -> OutgoingMessage:
        text = (
            "ПОЛЬЗОВАТЕЛЬСКОЕ СОГЛАШЕНИЕ\n\n"
            f"Настоящим я, {display_name}, даю свое согласие на обработку моих персональных данных "
            "в соответствии с Федеральным законом от 27.07.2006 № 152-ФЗ «О персональных данных».\n\n"
            "1. Согласие на обработку персональных данных:\n"
            "- Фамилия, имя\n"
            "- Номер телефона\n"
            "- Иные данные, предоставляемые мной при использовании сервиса\n\n"
            "2. Цели обработки персональных данных:\n"
            "- Оказание волонтерской помощи\n"
            "- Связь для координации помощи\n"
            "- Улучшение качества сервиса\n\n"
            "3. Передача персональных данных:\n"
            "Я соглашаюсь с тем, что мой номер телефона может быть передан другим пользователям "
            "при отклике на мою заявку о помощи.\n\n"
            "4. Срок действия согласия:\n"
            "Согласие действует до момента отзыва путем удаления аккаунта.\n\n"
            "Нажимая кнопку \"Принять\", я подтверждаю, что ознакомлен(а) с условиями соглашения "
            "и даю согласие на обработку моих персональных данных."
        )
        return OutgoingMessage(
            text=text,
            keyboard=keyboard([("Принять", "accept_agreement"), ("Назад", "decline_agreement")])
        )

    @staticmethod
    def agreement_accepted() -> OutgoingMessage:
        return OutgoingMessage(text="Соглашение принято! Теперь вы можете пользоваться ботом.")

    @staticmethod
    def agreement_declined() -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "Для использования бота необходимо принять пользовательское соглашение.\n\n"
                "Если вы передумаете, просто отправьте /start снова."
            )
        )

    @staticmethod
    def main_menu(display_name: Optional[str] = None) -> OutgoingMessage:
        text = f"Главное меню. Что вам нужно, {display_name}?" if display_name else "Главное меню. Что вам нужно?"
        return OutgoingMessage(
            text=text,
            keyboard=keyboard(
                [("Хочу помочь", "want_to_help"), ("Нужна помощь", "need_help")],
                [("Профиль", "profile")]
            )
        )

    @staticmethod
    def about() -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "О боте\n\n"
                "Этот бот помогает быстро соединить людей, которым нужна помощь, "
                "с теми, кто готов помочь.\n\n"
                "Оставьте заявку, и волонтеры вашего округа увидят ее в общем списке. "
                "Откликнувшийся волонтер получит ваш телефон, а вы получите уведомление.\n\n"
                "Присоединяйтесь к нашему сообществу волонтеров!"
            )
        )

    @staticmethod
    def location_selection(action: str) -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                f"{action_title(action)}\n\n"
                "Выберите город, где вы хотите помогать:\n\n"
                "Пока доступна только Москва. В будущем добавим другие города."
            ),
            keyboard=keyboard([("Москва", f"moscow_{action}")], [BACK_TO_MENU])
        )

    @staticmethod
    def region_selection(action: str) -> OutgoingMessage:
        regions = list(Region)
        rows = [
            [(region.label, f"district_{action}_{region.value}") for region in regions[i:i + 2]]
            for i in range(0, len(regions), 2)
        ]
        rows.append([("Выбрать другой город", f"back_to_location_{action}"), BACK_TO_MENU])
        return OutgoingMessage(
            text=(
                f"{action_title(action)}\n\n"
                "Выберите округ Москвы:\n\n"
                "Укажите, в каком округе вы готовы помогать или где нужна помощь"
            ),
            keyboard=keyboard(*rows)
        )

    @staticmethod
    def category_selection(action: str, region: str) -> OutgoingMessage:
        categories = list(Category)
        rows = [
            [(category.label, f"category_{action}_{category.value}_{region}") for category in categories[i:i + 2]]
            for i in range(0, len(categories), 2)
        ]
        rows.append([("Выбрать другой округ", f"back_to_districts_{action}"), BACK_TO_MENU])
        descriptions = "".join(f"• {c.label} - {c.description}\n" for c in categories)
        return OutgoingMessage(
            text=(
                f"{action_title(action)}\n\n"
                f"Округ: {region_label(region)}\n\n"
                "Выберите категорию помощи:\n\n"
                f"{descriptions}"
            ),
            keyboard=keyboard(*rows)
        )

    # =========================================================================
    # PROFILE
    # =========================================================================

    @staticmethod
    def profile(display_name: str, requests_count: int, responses_count: int) -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "Ваш профиль\n\n"
                f"Имя: {display_name}\n"
                f"Количество заявок: {requests_count}\n"
                f"Количество откликов: {responses_count}\n\n"
                "Здесь вы можете просмотреть и управлять своими заявками и откликами."
            ),
            keyboard=keyboard(
                [(f"Мои заявки ({requests_count})", "my_requests"), (f"Мои отклики ({responses_count})", "my_responses")],
                [BACK_TO_MENU]
            )
        )

    @staticmethod
    def no_own_requests() -> OutgoingMessage:
        return OutgoingMessage(
            text="У вас пока нет активных заявок.\n\nХотите создать первую заявку о помощи?",
            keyboard=keyboard([("Создать заявку", "need_help")], [BACK_TO_PROFILE])
        )

    @staticmethod
    def own_request_card(request: HelpRequest, index: int, total: int, responses_count: int) -> OutgoingMessage:
        status = "Зарезервирована" if request.reserved_by else "Свободна"
        text = (
            f"Ваша заявка {index + 1} из {total}\n\n"
            f"Категория: {category_label(request.category)}\n"
            f"Округ: {region_label(request.region)}\n"
            f"Адрес: {request.address or NO_ADDRESS}\n"
            f"Телефон: {request.phone}\n"
            f"Проблема: {request.problem}\n"
            f"Откликов: {responses_count}\n"
            f"Время: {format_timestamp(request.created_at)}\n"
            f"Статус: {status}\n"
        )
        return OutgoingMessage(
            text=text,
            keyboard=keyboard(
                _nav_row("my_", index, total),
                [("Удалить заявку", f"delete_{request.id}")],
                [BACK_TO_PROFILE, BACK_TO_MENU]
            )
        )

    @staticmethod
    def no_own_responses() -> OutgoingMessage:
        return OutgoingMessage(
            text="У вас пока нет активных откликов.\n\nХотите найти заявки для помощи?",
            keyboard=keyboard([("Найти заявки", "want_to_help")], [BACK_TO_PROFILE])
        )

    @staticmethod
    def own_response_card(response: Response, request: HelpRequest, index: int, total: int) -> OutgoingMessage:
        text = (
            f"Ваш отклик {index + 1} из {total}\n\n"
            f"Заявка: {request.problem[:50]}...\n"
            f"Категория: {category_label(request.category)}\n"
            f"Округ: {region_label(request.region)}\n"
            f"Адрес: {request.address or NO_ADDRESS}\n"
            f"Автор: {request.author_name}\n"
            f"Телефон: {request.phone}\n"
            f"Время отклика: {format_timestamp(response.created_at)}\n\n"
            "Для связи используйте указанный телефон автора заявки"
        )
        return OutgoingMessage(
            text=text,
            keyboard=keyboard(
                _nav_row("resp_", index, total),
                [("Отменить отклик", f"cancel_response_{request.id}")],
                [BACK_TO_PROFILE, BACK_TO_MENU]
            )
        )

    @staticmethod
    def response_target_missing(index: int, total: int) -> OutgoingMessage:
        return OutgoingMessage(
            text="Заявка, на которую вы откликнулись, больше не существует.",
            keyboard=keyboard(_nav_row("resp_", index, total), [BACK_TO_PROFILE, BACK_TO_MENU])
        )

    # =========================================================================
    # REQUEST FEED
    # =========================================================================

    @staticmethod
    def empty_feed(category: Optional[str], region: Optional[str]) -> OutgoingMessage:
        filter_text = ""
        if category:
            filter_text += f" в категории \"{category_label(category)}\""
        if region:
            filter_text += f" в округе \"{region_label(region)}\""
        return OutgoingMessage(
            text=f"На данный момент нет активных заявок{filter_text}. Возвращайтесь позже!",
            keyboard=keyboard(
                [("Выбрать другую категорию", f"back_to_categories_{HELP}_{region or ''}")],
                [("Выбрать другой округ", f"back_to_districts_{HELP}")],
                [BACK_TO_MENU]
            )
        )

    @staticmethod
    def request_card(
        request: HelpRequest,
        index: int,
        total: int,
        category: Optional[str],
        region: Optional[str],
        has_responded: bool
    ) -> OutgoingMessage:
        text = (
            f"Заявка {index + 1} из {total}\n\n"
            f"Категория: {category_label(request.category)}\n"
            f"Округ: {region_label(request.region)}\n"
            f"Адрес: {request.address or NO_ADDRESS}\n"
            f"Имя: {request.author_name}\n"
            f"Проблема: {request.problem}\n"
            f"Время: {format_timestamp(request.created_at)}\n\n"
        )
        if has_responded:
            text += (
                f"Телефон для связи: {request.phone}\n\n"
                "Вы уже откликнулись на эту заявку. Для связи используйте указанный телефон."
            )
        else:
            text += "Нажмите \"Откликнуться\", чтобы увидеть контактные данные и помочь."

        rows = [_nav_row("", index, total, f"_{category or ''}_{region or ''}")]
        if not has_responded:
            rows.append([("Откликнуться", f"respond_{request.id}")])
        if category:
            rows.append([("Выбрать другую категорию", f"back_to_categories_{HELP}_{region or ''}")])
        if region:
            rows.append([("Выбрать другой округ", f"back_to_districts_{HELP}")])
        rows.append([("Главное меню", "back_to_start")])
        return OutgoingMessage(text=text, keyboard=keyboard(*rows))

    # =========================================================================
    # REQUEST CREATION FLOW
    # =========================================================================

    @staticmethod
    def ask_problem(category: str, region: str) -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "Вы выбрали:\n"
                f"Категория: {category_label(category)}\n"
                f"Округ: {region_label(region)}\n\n"
                "Пожалуйста, детально опишите вашу проблему:"
            )
        )

    @staticmethod
    def empty_problem() -> OutgoingMessage:
        return OutgoingMessage(text="Описание не может быть пустым. Пожалуйста, опишите вашу проблему:")

    @staticmethod
    def ask_address() -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "Спасибо! Теперь укажите адрес, где нужна помощь.\n\n"
                "Например: ул. Ленина, д. 10, кв. 25"
            )
        )

    @staticmethod
    def ask_phone() -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "Теперь укажите ваш номер телефона для связи.\n\n"
                "Форматы номеров:\n"
                f"{PhoneValidator.format_hint()}\n\n"
                "Пожалуйста, введите ваш номер:"
            )
        )

    @staticmethod
    def invalid_phone() -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "Неверный формат номера телефона.\n\n"
                "Правильные форматы:\n"
                f"{PhoneValidator.format_hint()}\n\n"
                "Пожалуйста, введите номер еще раз:"
            )
        )

    @staticmethod
    def request_created(display_name: str, request: HelpRequest) -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "Спасибо! Ваша заявка принята. Волонтеры свяжутся с вами в ближайшее время.\n\n"
                "Ваши данные:\n"
                f"Имя: {display_name}\n"
                f"Категория: {category_label(request.category)}\n"
                f"Округ: {region_label(request.region)}\n"
                f"Адрес: {request.address or NO_ADDRESS}\n"
                f"Телефон: {request.phone}\n"
                f"Проблема: {request.problem}"
            ),
            keyboard=keyboard([("Вернуться в главное меню", "return_after_request")])
        )

    # =========================================================================
    # RESERVATION
    # =========================================================================

    @staticmethod
    def already_responded() -> OutgoingMessage:
        return OutgoingMessage(text="Вы уже откликались на эту заявку.")

    @staticmethod
    def request_not_found() -> OutgoingMessage:
        return OutgoingMessage(text="Заявка не найдена.", keyboard=keyboard([BACK_TO_MENU]))

    @staticmethod
    def reserve_failed() -> OutgoingMessage:
        return OutgoingMessage(text="Не удалось откликнуться на заявку. Возможно, она уже занята.")

    @staticmethod
    def reserve_success(request: HelpRequest) -> OutgoingMessage:
        return OutgoingMessage(
            text=(
                "Вы успешно откликнулись на заявку!\n\n"
                "Информация о заявке:\n"
                f"Автор: {request.author_name}\n"
                f"Округ: {region_label(request.region)}\n"
                f"Адрес: {request.address or NO_ADDRESS}\n"
                f"Телефон: {request.phone}\n"
                f"Проблема: {request.problem}\n\n"
                "Свяжитесь с автором заявки по указанному телефону для координации помощи."
            ),
            keyboard=keyboard([("Мои отклики", "my_responses")], [BACK_TO_MENU])
        )

    @staticmethod
    def author_notification(responder_name: str, request: HelpRequest, responder_phone: Optional[str]) -> str:
        return (
            f"На вашу заявку откликнулся пользователь {responder_name}!\n\n"
            f"Заявка: {request.problem}\n"
            f"Округ: {region_label(request.region)}\n"
            f"Адрес: {request.address or NO_ADDRESS}\n"
            f"Откликнувшийся: {responder_name}\n"
            f"Телефон откликнувшегося: {responder_phone or NO_ADDRESS}\n\n"
            "Вы можете связаться с ним для уточнения деталей помощи."
        )

    @staticmethod
    def cancel_success() -> OutgoingMessage:
        return OutgoingMessage(text="Отклик успешно отменен! Заявка снова будет видна в общем списке.")

    @staticmethod
    def cancel_failed() -> OutgoingMessage:
        return OutgoingMessage(text="Не удалось отменить отклик.")

    @staticmethod
    def delete_success() -> OutgoingMessage:
        return OutgoingMessage(text="Заявка успешно удалена!")

    @staticmethod
    def delete_failed() -> OutgoingMessage:
        return OutgoingMessage(text="Не удалось удалить заявку. Возможно, она уже была удалена.")

    @staticmethod
    def generic_error() -> OutgoingMessage:
        return OutgoingMessage(
            text="Произошла ошибка. Попробуйте еще раз.",
            keyboard=keyboard([BACK_TO_MENU])
        )
