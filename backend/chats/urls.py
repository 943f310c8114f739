from django.urls import path
from . import views

app_name = 'chats'

urlpatterns = [
    path('', views.chats_collection, name='chats'),
    path('<int:chat_id>/messages/', views.chat_messages, name='chat-messages'),
]
